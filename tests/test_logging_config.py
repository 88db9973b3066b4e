"""
Brief: Tests for ubwrap.config.logging_config.init_logging and formatters.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import logging.handlers
from pathlib import Path

import pytest

from ubwrap.config.config_parser import LoggingConfig
from ubwrap.config.logging_config import (
    BracketLevelFormatter,
    SyslogFormatter,
    init_logging,
    parse_level,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_parse_level():
    assert parse_level("debug") == logging.DEBUG
    assert parse_level(" WARN ") == logging.WARNING
    assert parse_level("crit") == logging.CRITICAL
    assert parse_level(None) == logging.INFO
    assert parse_level("loud", default=logging.ERROR) == logging.ERROR


def test_init_logging_adds_stderr_handler():
    """
    Brief: init_logging configures root logger with stderr handler by default.

    Inputs:
      - cfg: minimal dict with level

    Outputs:
      - None: Asserts StreamHandler present and level applied
    """
    init_logging({"level": "debug"})
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(type(h) is logging.StreamHandler for h in root.handlers)


def test_init_logging_replaces_handlers():
    init_logging({})
    init_logging({})
    streams = [h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler]
    assert len(streams) == 1


def test_init_logging_accepts_model_and_writes_file(tmp_path):
    log_path = tmp_path / "logs" / "ubwrap.log"
    init_logging(LoggingConfig(level="info", stderr=False, file=str(log_path)))
    logging.getLogger("ubwrap.test").info("file message")
    logging.getLogger("ubwrap.test").debug("hidden")
    for h in logging.getLogger().handlers:
        h.flush()
    content = Path(log_path).read_text()
    assert "[info] ubwrap.test: file message" in content
    assert "hidden" not in content


def test_init_logging_syslog(monkeypatch):
    """
    Brief: init_logging attaches a syslog handler with the configured tag.

    Inputs:
      - syslog: True or dict

    Outputs:
      - None: Asserts dummy handler received address, facility and formatter
    """
    created = {}

    class DummySysLogHandler(logging.Handler):
        LOG_USER = 8
        LOG_LOCAL0 = 128

        def __init__(self, address=None, facility=None):
            super().__init__()
            created["address"] = address
            created["facility"] = facility

        def setFormatter(self, fmt):
            created["formatter"] = fmt

    monkeypatch.setattr(logging.handlers, "SysLogHandler", DummySysLogHandler)
    init_logging({"syslog": True, "stderr": False})
    assert created["address"] == "/dev/log"
    assert created["formatter"].tag == "ubwrap"

    created.clear()
    init_logging(
        {"syslog": {"address": ["localhost", 514], "facility": "local0", "tag": "dns"}, "stderr": False}
    )
    assert created["address"] == ("localhost", 514)
    assert created["facility"] == 128
    assert created["formatter"].tag == "dns"


def test_init_logging_syslog_failure_warns(monkeypatch, caplog):
    class FailingSysLogHandler:
        LOG_USER = 8

        def __init__(self, *a, **kw):
            raise OSError("no syslog")

    monkeypatch.setattr(logging.handlers, "SysLogHandler", FailingSysLogHandler)
    caught = []
    monkeypatch.setattr(
        logging.getLogger("ubwrap.config"), "warning", lambda msg, *args: caught.append(msg % args)
    )
    init_logging({"syslog": True})
    assert caught and "Failed to configure syslog" in caught[0]


def test_formatters_produce_expected_tags():
    fmt = BracketLevelFormatter(fmt="%(asctime)s %(level_tag)s %(name)s: %(message)s")
    rec = logging.LogRecord("n", logging.ERROR, __file__, 1, "m", (), None)
    rec.created = 0
    out = fmt.format(rec)
    assert out == "1970-01-01T00:00:00Z [error] n: m"

    s = SyslogFormatter()
    rec2 = logging.LogRecord("n2", logging.WARNING, __file__, 2, "m2", (), None)
    assert s.format(rec2) == "ubwrap: [warn] n2: m2"
    rec3 = logging.LogRecord("n3", 5, __file__, 3, "m3", (), None)
    assert "[lvl5]" in SyslogFormatter(tag="x").format(rec3)
