import importlib.metadata
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

try:
    DNSGATE_VERSION = importlib.metadata.version("dnsgate")
except importlib.metadata.PackageNotFoundError:  # pragma: no cover - running from a source checkout
    DNSGATE_VERSION = "unknown"

DEFAULT_RESOLVER_URL = "https://dns.google.com/resolve"


class ResolveError(Exception):
    """
    Brief: External resolution of a name failed.

    Inputs:
    - message: description of the failure

    Outputs:
    - Exception instance
    """

    pass


class TransportError(ResolveError):
    """
    Brief: Network, HTTP, or body-decoding failure talking to the resolver.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


class UpstreamStatusError(ResolveError):
    """
    Brief: The resolver answered with a non-zero DNS status for the query.

    Inputs:
    - name: queried name
    - status: DNS status code reported in the JSON body

    Outputs:
    - Exception instance with a status attribute
    """

    def __init__(self, name: str, status: int) -> None:
        self.status = status
        super().__init__(f"DNS query for {name} failed with status: {status}")


class NoAnswerError(ResolveError):
    """Brief: The resolver reported success but returned no usable answer."""

    pass


class JsonResolverClient:
    """
    Brief: Resolve names through a JSON DNS-over-HTTPS API (e.g. dns.google).

    Inputs:
    - url: resolver endpoint accepting ?name=<name>&type=A
    - timeout_ms: per-request timeout in milliseconds
    - verify: verify TLS certificates
    - session: optional requests.Session (tests inject fakes here)

    Outputs:
    - JsonResolverClient instance

    Notes:
    - One attempt per call; callers decide what to do on failure.
    - Expects a body shaped as {"Status": int, "Answer": [{"data": ...}, ...]}
      and returns the first answer's data.

    Example:
        >>> client = JsonResolverClient()
        >>> client.resolve_external("www.google.com.")  # doctest: +SKIP
        '142.250.74.36'
    """

    def __init__(
        self,
        url: str = DEFAULT_RESOLVER_URL,
        *,
        timeout_ms: int = 2000,
        verify: bool = True,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout_ms = int(timeout_ms)
        self.verify = bool(verify)
        self.headers = {k: v for (k, v) in (headers or {}).items()}
        # Keep any explicit User-Agent regardless of casing.
        if not any(k.lower() == "user-agent" for k in self.headers):
            self.headers["User-Agent"] = f"dnsgate v{DNSGATE_VERSION}"
        self.headers.setdefault("Accept", "application/dns-json")
        self._session = session or requests.Session()

    def _fetch(self, name: str) -> Dict[str, Any]:
        """
        Brief: Issue the GET request and decode the JSON body.

        Inputs:
        - name: domain name to resolve

        Outputs:
        - dict: decoded JSON body

        Raises TransportError on network/TLS errors, non-200 HTTP status, or a
        body that is not a JSON object.
        """
        try:
            resp = self._session.get(
                self.url,
                params={"name": name, "type": "A"},
                headers=self.headers,
                timeout=self.timeout_ms / 1000.0,
                verify=self.verify,
            )
        except requests.RequestException as e:
            raise TransportError(f"failed to query DNS: {e}") from e

        if resp.status_code != 200:
            raise TransportError(
                f"unexpected HTTP status: {resp.status_code} {resp.reason}"
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise TransportError(f"failed to parse DNS response: {e}") from e
        if not isinstance(body, dict):
            raise TransportError("failed to parse DNS response: not a JSON object")
        return body

    def resolve_external(self, name: str) -> str:
        """
        Brief: Resolve name to a single address string.

        Inputs:
        - name: normalized domain name

        Outputs:
        - str: data field of the first answer

        Raises:
        - TransportError, UpstreamStatusError, NoAnswerError (all ResolveError)
        """
        body = self._fetch(name)

        try:
            status = int(body.get("Status", -1))
        except (TypeError, ValueError):
            raise TransportError(f"invalid Status in DNS response: {body.get('Status')!r}")
        if status != 0:
            raise UpstreamStatusError(name, status)

        answers = body.get("Answer") or []
        if not isinstance(answers, list) or not answers:
            raise NoAnswerError(f"no DNS answer found for {name}")

        first = answers[0]
        data = first.get("data") if isinstance(first, dict) else None
        if not data:
            raise NoAnswerError(f"first DNS answer for {name} has no data")

        logger.debug("Resolved %s via %s -> %s", name, self.url, data)
        return str(data)

    def close(self) -> None:
        """Release pooled HTTP connections."""
        self._session.close()
