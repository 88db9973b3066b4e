"""Configuration loading for ubwrap.

Brief:
  Reads a YAML configuration file, validates it with pydantic models and
  builds a configured Resolver from it. The CLI is the main user; embedding
  applications can call ``load_config`` and ``build_resolver`` directly.

Inputs:
  - YAML config files or already-parsed mappings.

Outputs:
  - AppConfig models and configured Resolver instances.

Example config:
  logging:
    level: debug
  resolver:
    engine: forwarder
    options:
      edns-buffer-size: 4096
      do-ip6: false
    forward: [9.9.9.9, 149.112.112.112]
    zones:
      - {name: home.arpa., type: static}
    data:
      - "router.home.arpa. IN A 192.168.1.1"
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..engine.registry import DEFAULT_ENGINE
from ..resolver import Resolver

logger = logging.getLogger("ubwrap.config")

ConfigOptionValue = Optional[Union[bool, int, str]]


class LoggingConfig(BaseModel):
    """Brief: Logging section, passed to init_logging().

    Inputs:
      - level: debug, info, warn, error or crit.
      - stderr: Log to stderr.
      - file: Optional log file path.
      - syslog: False, True, or a mapping with address/facility/tag.
    """

    level: str = "info"
    stderr: bool = True
    file: Optional[str] = None
    syslog: Union[bool, Dict[str, Any]] = False

    class Config:
        extra = "forbid"


class StubZone(BaseModel):
    """Brief: One stub zone: authoritative servers queried without recursion."""

    name: str
    addrs: List[str] = Field(min_length=1)
    prime: bool = False

    class Config:
        extra = "forbid"


class TrustAnchorFile(BaseModel):
    path: str
    auto_retrieval: bool = False

    class Config:
        extra = "forbid"


class LocalZone(BaseModel):
    name: str
    type: str = "static"

    class Config:
        extra = "forbid"


class ResolverSettings(BaseModel):
    """Brief: Resolver section; applied by build_resolver() in field order.

    Inputs:
      - engine: Engine alias or dotted path.
      - config_file: Engine configuration file (unbound.conf syntax).
      - options: Options that must be supported by the engine.
      - try_options: Options applied only when the engine supports them.
      - forward: Forwarder addresses (ip[@port][#tls-name]).
      - stubs: Stub zones.
      - resolv_conf: True for the system resolv.conf, or a path.
      - hosts: True for the system hosts file, or a path.
      - trust_anchors: DS/DNSKEY anchors in zone-file line form.
      - trust_anchor_files: Anchor file paths or {path, auto_retrieval}.
      - trusted_keys_files: BIND trusted-keys files.
      - zones: Local zones.
      - data: Local data records.
    """

    engine: str = DEFAULT_ENGINE
    config_file: Optional[str] = None
    options: Dict[str, ConfigOptionValue] = Field(default_factory=dict)
    try_options: Dict[str, ConfigOptionValue] = Field(default_factory=dict)
    forward: List[str] = Field(default_factory=list)
    stubs: List[StubZone] = Field(default_factory=list)
    resolv_conf: Union[bool, str, None] = None
    hosts: Union[bool, str, None] = None
    trust_anchors: List[str] = Field(default_factory=list)
    trust_anchor_files: List[Union[str, TrustAnchorFile]] = Field(default_factory=list)
    trusted_keys_files: List[str] = Field(default_factory=list)
    zones: List[LocalZone] = Field(default_factory=list)
    data: List[str] = Field(default_factory=list)

    class Config:
        extra = "forbid"


class AppConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)

    class Config:
        extra = "forbid"


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def parse_config(data: Optional[Mapping[str, Any]], *, source: str = "<config>") -> AppConfig:
    """Brief: Validate an already-loaded configuration mapping.

    Inputs:
      - data: Parsed YAML mapping; None means an empty config.
      - source: Name used in error messages.

    Outputs:
      - AppConfig.

    Raises:
      - ValueError with a readable message when validation fails.
    """

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{source}: top level must be a mapping, got {type(data).__name__}")
    try:
        return AppConfig.model_validate(dict(data))
    except ValidationError as exc:
        raise ValueError(f"{source}: invalid configuration: {_format_validation_error(exc)}") from exc


def load_config(path: str) -> AppConfig:
    """Brief: Read and validate a YAML configuration file.

    Inputs:
      - path: File path.

    Outputs:
      - AppConfig.

    Raises:
      - OSError when the file cannot be read.
      - ValueError on YAML syntax errors or invalid settings.
    """

    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"{path}: invalid YAML: {exc}") from exc
    return parse_config(raw, source=path)


def apply_settings(resolver: Resolver, settings: ResolverSettings) -> Resolver:
    """Brief: Apply resolver settings to an existing Resolver, in field order.

    Inputs:
      - resolver: Open Resolver.
      - settings: ResolverSettings.

    Outputs:
      - The same resolver.

    Raises:
      - Any ubwrap error raised by the individual operations.
    """

    if settings.config_file:
        resolver.set_config(settings.config_file)
    for key, value in settings.options.items():
        resolver.set_option(key, value)
    for key, value in settings.try_options.items():
        resolver.try_option(key, value)
    for addr in settings.forward:
        resolver.set_forward(addr)
    for stub in settings.stubs:
        for addr in stub.addrs:
            resolver.set_stub(stub.name, addr, stub.prime)
    if settings.resolv_conf:
        resolver.set_resolv_conf(None if settings.resolv_conf is True else settings.resolv_conf)
    if settings.hosts:
        resolver.set_hosts(None if settings.hosts is True else settings.hosts)
    for anchor in settings.trust_anchors:
        resolver.add_trust_anchor(anchor)
    for entry in settings.trust_anchor_files:
        if isinstance(entry, TrustAnchorFile):
            resolver.add_trust_anchor_file(entry.path, auto_retrieval=entry.auto_retrieval)
        else:
            resolver.add_trust_anchor_file(entry)
    for path in settings.trusted_keys_files:
        resolver.add_trusted_keys(path)
    for zone in settings.zones:
        resolver.add_zone(zone.name, zone.type)
    for record in settings.data:
        resolver.add_data(record)
    return resolver


def build_resolver(settings: ResolverSettings, *, engine: Optional[str] = None) -> Resolver:
    """Brief: Create a Resolver for the configured engine and apply settings.

    Inputs:
      - settings: ResolverSettings.
      - engine: Optional engine override (e.g. from the command line).

    Outputs:
      - Configured Resolver. On failure the resolver is closed before the
        error propagates.
    """

    resolver = Resolver(engine or settings.engine)
    try:
        apply_settings(resolver, settings)
    except Exception:
        resolver.close()
        raise
    logger.debug("resolver ready: %r", resolver)
    return resolver
