from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

_TAGS = {
    logging.DEBUG: "[debug]",
    logging.INFO: "[info]",
    logging.WARNING: "[warn]",
    logging.ERROR: "[error]",
    logging.CRITICAL: "[crit]",
}

LOG_FORMAT = "%(asctime)s %(level_tag)s %(name)s: %(message)s"


def _level_tag(levelno: int) -> str:
    return _TAGS.get(levelno, f"[lvl{levelno}]")


def parse_level(value: Any, default: int = logging.INFO) -> int:
    """Brief: Map a level name ('debug', 'warn', ...) to a logging constant.

    Inputs:
      - value: Level name (case-insensitive) or None.
      - default: Level used when value is empty or unrecognized.

    Outputs:
      - int logging level.
    """

    if value is None:
        return default
    return _LEVELS.get(str(value).strip().lower(), default)


class SyslogFormatter(logging.Formatter):
    """Formatter for syslog output without timestamps (syslog adds its own)."""

    def __init__(self, tag: str = "ubwrap") -> None:
        super().__init__()
        self.tag = tag

    def format(self, record):
        record.level_tag = _level_tag(record.levelno)
        return f"{self.tag}: {record.level_tag} {record.name}: {record.getMessage()}"


class BracketLevelFormatter(logging.Formatter):
    """Formatter that adds bracketed lowercase level tags and UTC timestamps."""

    def formatTime(self, record, datefmt=None):
        """Format the record's creation time as UTC ISO-8601 with Z suffix."""
        return datetime.fromtimestamp(record.created, timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        )

    def format(self, record):
        record.level_tag = _level_tag(record.levelno)
        return super().format(record)


def _syslog_handler(syslog_cfg: Union[bool, Mapping[str, Any]]) -> logging.Handler:
    if isinstance(syslog_cfg, Mapping):
        address: Any = syslog_cfg.get("address") or "/dev/log"
        if isinstance(address, (list, tuple)):
            address = (str(address[0]), int(address[1]))
        facility = getattr(
            logging.handlers.SysLogHandler,
            f"LOG_{str(syslog_cfg.get('facility') or 'USER').upper()}",
            logging.handlers.SysLogHandler.LOG_USER,
        )
        tag = str(syslog_cfg.get("tag") or "ubwrap")
    else:
        address = "/dev/log"
        facility = logging.handlers.SysLogHandler.LOG_USER
        tag = "ubwrap"
    handler = logging.handlers.SysLogHandler(address=address, facility=facility)
    handler.setFormatter(SyslogFormatter(tag=tag))
    return handler


def init_logging(cfg: Optional[Union[Mapping[str, Any], Any]]) -> None:
    """
    Initialize logging for the ubwrap CLI and embedding applications.

    Args:
        cfg: Logging configuration, either a mapping or a LoggingConfig model,
            with optional keys:
            - level: debug, info, warn, error, crit (default: info)
            - stderr: boolean to log to stderr (default: True)
            - file: path to a log file (optional)
            - syslog: boolean or dict with address, facility and tag

    Example config:
        {
            "level": "debug",
            "stderr": True,
            "file": "./ubwrap.log",
            "syslog": {"address": "/dev/log", "tag": "ubwrap"}
        }
    """
    if cfg is not None and hasattr(cfg, "model_dump"):
        cfg = cfg.model_dump()
    data: Dict[str, Any] = dict(cfg or {})

    level = parse_level(data.get("level"))
    formatter = BracketLevelFormatter(fmt=LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)

    # Replace handlers so repeated calls do not duplicate output.
    for h in list(root.handlers):
        root.removeHandler(h)

    if data.get("stderr", True):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        root.addHandler(stderr_handler)

    file_path = data.get("file")
    if isinstance(file_path, str) and file_path.strip():
        path = os.path.abspath(os.path.expanduser(file_path.strip()))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    syslog_cfg = data.get("syslog")
    if syslog_cfg:
        try:
            root.addHandler(_syslog_handler(syslog_cfg))
        except (OSError, ValueError) as e:  # pragma: no cover - depends on host syslog
            logging.getLogger("ubwrap.config").warning("Failed to configure syslog: %s", e)

    logging.captureWarnings(True)
