"""
Brief: Global pytest configuration: src/ on sys.path, per-test 10s timeout,
and shared fixtures for building a resolution engine.

Inputs:
  - None

Outputs:
  - None
"""

import os
import signal
import sys
import threading

import pytest

# Ensure 'src' is on sys.path so 'dnsgate' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from dnsgate.denial_log import DenialLog  # noqa: E402
from dnsgate.records import RecordStore  # noqa: E402
from dnsgate.servers.resolver import ResolutionEngine  # noqa: E402
from dnsgate.servers.transports.doh_json import NoAnswerError  # noqa: E402
from dnsgate.whitelist import Whitelist  # noqa: E402


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


# Install handler if supported on this platform
if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        # Fallback: no-op on platforms without SIGALRM
        yield


class FakeResolverClient:
    """
    Brief: Stand-in for JsonResolverClient recording every external lookup.

    Inputs:
      - answers: mapping name -> address returned by resolve_external.
      - error: optional exception raised on every call instead.
      - delay: optional seconds to sleep inside each call.

    Outputs:
      - None: inspect .calls for the names that were looked up.
    """

    def __init__(self, answers=None, error=None, delay=0.0):
        self.answers = dict(answers or {})
        self.error = error
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def resolve_external(self, name):
        with self._lock:
            self.calls.append(name)
        if self.delay:
            threading.Event().wait(self.delay)
        if self.error is not None:
            raise self.error
        if name not in self.answers:
            raise NoAnswerError(f"no DNS answer found for {name}")
        return self.answers[name]

    def close(self):
        pass


@pytest.fixture
def gate_files(tmp_path):
    """
    Brief: Write the standard records/whitelist files used across tests.

    Inputs:
      - tmp_path: pytest temporary directory

    Outputs:
      - dict with 'records', 'whitelist' and 'denied' paths
    """
    records = tmp_path / "dns_records.txt"
    records.write_text("# local names\none.test. 10.0.0.1\n\ntwo.test. 10.0.0.2\n")
    whitelist = tmp_path / "whitelist.txt"
    whitelist.write_text("# allowed\ngoogle.com\nexample.com\n")
    return {
        "records": records,
        "whitelist": whitelist,
        "denied": tmp_path / "denied.log",
    }


@pytest.fixture
def make_engine(gate_files):
    """
    Brief: Factory building a ResolutionEngine over the gate_files fixture.

    Inputs:
      - client: optional FakeResolverClient (a fresh empty one by default)

    Outputs:
      - callable returning (engine, client)
    """

    def _make(client=None, answer_ttl=3600):
        store = RecordStore()
        store.load(gate_files["records"])
        client = client if client is not None else FakeResolverClient()
        engine = ResolutionEngine(
            store,
            Whitelist(gate_files["whitelist"]),
            DenialLog(gate_files["denied"]),
            client,
            answer_ttl=answer_ttl,
        )
        return engine, client

    return _make


@pytest.fixture
def fake_client_cls():
    """
    Brief: Expose FakeResolverClient to tests without importing conftest.

    Inputs:
      - None

    Outputs:
      - FakeResolverClient class
    """
    return FakeResolverClient
