"""
Brief: Tests for dnsgate.config.logging_config.init_logging and formatters.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import logging.handlers
from pathlib import Path

import pytest

from dnsgate.config.logging_config import (
    BracketLevelFormatter,
    SyslogFormatter,
    init_logging,
    parse_level,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_init_logging_adds_stderr_handler_and_level():
    """
    Brief: init_logging configures the root logger with a stderr handler.

    Inputs:
      - cfg: minimal dict with level

    Outputs:
      - None: Asserts StreamHandler present and level applied
    """
    init_logging({"level": "debug"})
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(
        isinstance(h, logging.StreamHandler)
        and not isinstance(h, logging.FileHandler)
        for h in root.handlers
    )


def test_init_logging_without_stderr_has_no_handlers():
    init_logging({"stderr": False})
    assert logging.getLogger().handlers == []


def test_init_logging_file_handler_writes(tmp_path):
    """
    Brief: init_logging creates the file (and parent dirs) and writes tagged lines.

    Inputs:
      - cfg: file path under a missing directory and level

    Outputs:
      - None: Asserts file created and contains message
    """
    log_path = tmp_path / "var" / "dnsgate.log"
    init_logging({"level": "info", "file": str(log_path), "stderr": False})
    logging.getLogger("dnsgate.test").info("file message")
    for h in logging.getLogger().handlers:
        h.flush()

    content = Path(log_path).read_text()
    assert "file message" in content
    assert "[info] dnsgate.test:" in content


def test_init_logging_repeated_calls_do_not_duplicate_handlers():
    init_logging({})
    init_logging({})
    assert len(logging.getLogger().handlers) == 1


def test_init_logging_syslog(monkeypatch):
    """
    Brief: init_logging attaches a syslog handler for bool and dict configs.

    Inputs:
      - syslog: True or dict

    Outputs:
      - None: Asserts handler arguments and formatter tag
    """
    created = {}

    class DummySysLogHandler(logging.Handler):
        LOG_USER = 1
        LOG_DAEMON = 3

        def __init__(self, address=None, facility=None):
            super().__init__()
            created["address"] = address
            created["facility"] = facility

        def setFormatter(self, fmt):
            created["formatter"] = fmt

    monkeypatch.setattr(logging.handlers, "SysLogHandler", DummySysLogHandler)

    init_logging({"syslog": True, "stderr": False})
    assert created["address"] == "/dev/log"
    assert created["facility"] == DummySysLogHandler.LOG_USER

    created.clear()
    init_logging(
        {
            "syslog": {"address": ["localhost", 514], "facility": "daemon", "tag": "gw"},
            "stderr": False,
        }
    )
    assert created["address"] == ("localhost", 514)
    assert created["facility"] == DummySysLogHandler.LOG_DAEMON
    assert created["formatter"].tag == "gw"


def test_init_logging_syslog_failure_is_tolerated(monkeypatch):
    class FailingSysLogHandler:
        LOG_USER = 1

        def __init__(self, *a, **kw):
            raise OSError("no syslog")

    monkeypatch.setattr(logging.handlers, "SysLogHandler", FailingSysLogHandler)
    init_logging({"syslog": True, "stderr": False})
    assert logging.getLogger().handlers == []


@pytest.mark.parametrize(
    "value, expected",
    [
        ("debug", logging.DEBUG),
        ("WARN", logging.WARNING),
        ("crit", logging.CRITICAL),
        (None, logging.INFO),
        ("bogus", logging.INFO),
        (logging.ERROR, logging.ERROR),
    ],
)
def test_parse_level(value, expected):
    assert parse_level(value) == expected


def test_formatters_add_bracket_tags():
    record = logging.LogRecord("dnsgate.x", logging.WARNING, __file__, 1, "hi %s", ("there",), None)

    bracket = BracketLevelFormatter(fmt="%(asctime)s %(level_tag)s %(name)s: %(message)s")
    line = bracket.format(record)
    assert line.endswith("[warn] dnsgate.x: hi there")
    assert line[:20].endswith("Z")

    assert SyslogFormatter().format(record) == "dnsgate: [warn] dnsgate.x: hi there"
