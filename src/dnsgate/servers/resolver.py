"""Per-question resolution policy for dnsgate.

Brief:
  For each question in a query the engine answers from the local record store,
  or, on a miss, asks the whitelist whether the name may be resolved
  externally. Permitted names are resolved once through the external client
  and cached in the store for the rest of the process lifetime. Denied names
  are written to the denial log. Every outcome other than a local or external
  answer simply contributes no answer record; the reply itself is always sent.

Inputs:
  - RecordStore, Whitelist, DenialLog and an external client exposing
    resolve_external(name) -> str.

Outputs:
  - dnslib DNSRecord replies with the authoritative flag set.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from dnslib import QTYPE, RR, A, DNSRecord

from ..denial_log import DenialLog
from ..records import RecordStore
from ..whitelist import Whitelist
from .transports.doh_json import ResolveError

logger = logging.getLogger("dnsgate.resolver")

DEFAULT_ANSWER_TTL = 3600

# Resolution outcomes
ANSWERED = "answered"
CACHED = "cached"
DENIED = "denied"
FAILED = "failed"
UNSUPPORTED = "unsupported"


class EncodeError(Exception):
    """
    Brief: An answer record could not be built for a name/address pair.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


class ExternalResolver(Protocol):
    def resolve_external(self, name: str) -> str: ...


@dataclass
class Resolution:
    """
    Brief: Outcome of resolving one question.

    Inputs:
      - outcome: one of answered, cached, denied, failed, unsupported.
      - rr: answer record when outcome is answered or cached.

    Outputs:
      - Resolution instance.
    """

    outcome: str
    rr: Optional[RR] = None


def make_a_record(name: str, address: str, ttl: int = DEFAULT_ANSWER_TTL) -> RR:
    """
    Brief: Build an A record binding name to address.

    Inputs:
      - name: owner name for the record.
      - address: dotted IPv4 address string.
      - ttl: record TTL in seconds.

    Outputs:
      - RR: dnslib resource record.

    Raises EncodeError when address is not an IPv4 address.

    Example:
      >>> str(make_a_record("one.test.", "10.0.0.1").rdata)
      '10.0.0.1'
    """
    try:
        ip = ipaddress.IPv4Address(str(address).strip())
    except ValueError as e:
        raise EncodeError(f"cannot build A record for {name}: {e}") from e
    return RR(rname=name, rtype=QTYPE.A, rclass=1, ttl=int(ttl), rdata=A(str(ip)))


class ResolutionEngine:
    """
    Brief: Answer questions from local state, the whitelist-gated external
    resolver, or not at all.

    Inputs:
      - store: RecordStore seeded at startup; receives external answers.
      - whitelist: Whitelist consulted on local misses.
      - denial_log: DenialLog receiving names that are neither local nor
        whitelisted.
      - external: client with resolve_external(name) -> str.
      - answer_ttl: TTL placed on every answer record.

    Outputs:
      - ResolutionEngine instance.

    Example use:
        >>> engine = ResolutionEngine(store, whitelist, denial_log, client)  # doctest: +SKIP
        >>> reply = engine.build_reply(DNSRecord.question("one.test", "A"))  # doctest: +SKIP
    """

    def __init__(
        self,
        store: RecordStore,
        whitelist: Whitelist,
        denial_log: DenialLog,
        external: ExternalResolver,
        *,
        answer_ttl: int = DEFAULT_ANSWER_TTL,
    ) -> None:
        self.store = store
        self.whitelist = whitelist
        self.denial_log = denial_log
        self.external = external
        self.answer_ttl = max(0, int(answer_ttl))

    def resolve_question(self, qname: str, qtype: int) -> Resolution:
        """
        Brief: Run the resolution policy for one question.

        Inputs:
          - qname: queried name as decoded from the wire.
          - qtype: DNS RR type; only A is answered.

        Outputs:
          - Resolution: outcome plus the answer record when one was produced.

        Order:
          1. store hit -> answered
          2. miss, not whitelisted -> denial logged, denied
          3. miss, whitelisted -> external lookup; success is cached in the
             store, any ResolveError leaves the store untouched (failed)
        """
        if qtype != QTYPE.A:
            logger.debug("Skipping %s type %s (only A is answered)", qname, qtype)
            return Resolution(UNSUPPORTED)

        name = str(qname).lower()

        address = self.store.lookup(name)
        if address is not None:
            try:
                rr = make_a_record(name, address, self.answer_ttl)
            except EncodeError as e:
                logger.error("Local record for %s is unusable: %s", name, e)
                return Resolution(FAILED)
            logger.debug("Answered %s from local records: %s", name, address)
            return Resolution(ANSWERED, rr)

        if not self.whitelist.is_permitted(name):
            self.denial_log.record_denied(name)
            return Resolution(DENIED)

        try:
            address = self.external.resolve_external(name)
        except ResolveError as e:
            logger.warning("Failed to query external DNS for %s: %s", name, e)
            return Resolution(FAILED)

        try:
            rr = make_a_record(name, address, self.answer_ttl)
        except EncodeError as e:
            logger.warning("Failed to create DNS record for %s: %s", name, e)
            return Resolution(FAILED)

        self.store.insert(name, address)
        logger.info("Resolved %s externally: %s (cached)", name, address)
        return Resolution(CACHED, rr)

    def resolve_all(self, request: DNSRecord) -> List[Resolution]:
        """Resolve every question of request in order."""
        return [
            self.resolve_question(str(q.qname), q.qtype) for q in request.questions
        ]

    def build_reply(self, request: DNSRecord) -> DNSRecord:
        """
        Brief: Build the authoritative reply for a decoded request.

        Inputs:
          - request: parsed DNS query.

        Outputs:
          - DNSRecord: reply carrying one answer per answered question, in
            question order. Zero answers is still a valid reply.
        """
        reply = request.reply()
        reply.header.aa = 1
        for resolution in self.resolve_all(request):
            if resolution.rr is not None:
                reply.add_answer(resolution.rr)
        return reply

    def resolve_query_bytes(self, data: bytes) -> bytes:
        """
        Brief: Wire-level convenience wrapper around build_reply().

        Inputs:
          - data: wire-format DNS query.

        Outputs:
          - bytes: wire-format reply.

        Raises dnslib.DNSError when data cannot be parsed.
        """
        request = DNSRecord.parse(data)
        return self.build_reply(request).pack()
