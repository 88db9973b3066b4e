"""Configuration and logging setup."""

from __future__ import annotations

from .config_parser import (
    AppConfig,
    LocalZone,
    LoggingConfig,
    ResolverSettings,
    StubZone,
    TrustAnchorFile,
    apply_settings,
    build_resolver,
    load_config,
    parse_config,
)
from .logging_config import init_logging

__all__ = [
    "AppConfig",
    "LocalZone",
    "LoggingConfig",
    "ResolverSettings",
    "StubZone",
    "TrustAnchorFile",
    "apply_settings",
    "build_resolver",
    "init_logging",
    "load_config",
    "parse_config",
]
