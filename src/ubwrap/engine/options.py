"""Option table for the forwarding engine.

Brief:
  Options use unbound's names and value grammar so that configuration written
  for libunbound works unchanged. Values are stored in their canonical engine
  string form ("yes"/"no", decimal digits, free text).

Inputs:
  - Colon-terminated option keys and raw string values.

Outputs:
  - ``OptionStore`` holding the current settings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional

_INT_RE = re.compile(r"^-?[0-9]+$")
_SIZE_RE = re.compile(r"^([0-9]+)\s*([kKmMgG]?)[bB]?$")
_SIZE_MULT = {"": 1, "k": 1024, "m": 1024 * 1024, "g": 1024 * 1024 * 1024}


def _parse_bool(value: str) -> Optional[str]:
    return value if value in ("yes", "no") else None


def _int_parser(lo: int, hi: Optional[int]) -> Callable[[str], Optional[str]]:
    def parse(value: str) -> Optional[str]:
        value = value.strip()
        if not _INT_RE.match(value):
            return None
        number = int(value)
        if number < lo or (hi is not None and number > hi):
            return None
        return str(number)

    return parse


def _parse_size(value: str) -> Optional[str]:
    m = _SIZE_RE.match(value.strip())
    if not m:
        return None
    return str(int(m.group(1)) * _SIZE_MULT[m.group(2).lower()])


def _parse_str(value: str) -> Optional[str]:
    return value


@dataclass(frozen=True)
class OptionSpec:
    """Brief: Declared option kind and its default engine string."""

    parse: Callable[[str], Optional[str]]
    default: str


def _b(default: bool) -> OptionSpec:
    return OptionSpec(_parse_bool, "yes" if default else "no")


def _i(default: int, lo: int = 0, hi: Optional[int] = None) -> OptionSpec:
    return OptionSpec(_int_parser(lo, hi), str(default))


def _s(default: int) -> OptionSpec:
    return OptionSpec(_parse_size, str(default))


def _t(default: str = "") -> OptionSpec:
    return OptionSpec(_parse_str, default)


OPTIONS: Dict[str, OptionSpec] = {
    # logging
    "verbosity": _i(0),
    "logfile": _t(""),
    "use-syslog": _b(False),
    "log-time-ascii": _b(False),
    "log-queries": _b(False),
    "log-replies": _b(False),
    # transport
    "do-ip4": _b(True),
    "do-ip6": _b(True),
    "do-udp": _b(True),
    "do-tcp": _b(True),
    "tcp-upstream": _b(False),
    "tls-upstream": _b(False),
    "tls-cert-bundle": _t(""),
    "edns-buffer-size": _i(1232, hi=65535),
    "max-udp-size": _i(1232, hi=65535),
    "num-threads": _i(1),
    "outgoing-range": _i(4096),
    "outgoing-interface": _t(""),
    "do-not-query-localhost": _b(True),
    "unknown-server-time-limit": _i(376),
    "outbound-msg-retry": _i(5, hi=127),
    # caches
    "msg-cache-size": _s(4 * 1024 * 1024),
    "rrset-cache-size": _s(4 * 1024 * 1024),
    "key-cache-size": _s(4 * 1024 * 1024),
    "neg-cache-size": _s(1024 * 1024),
    "cache-max-ttl": _i(86400),
    "cache-min-ttl": _i(0),
    "cache-max-negative-ttl": _i(3600),
    "prefetch": _b(False),
    "serve-expired": _b(False),
    # behaviour
    "minimal-responses": _b(True),
    "qname-minimisation": _b(True),
    "harden-glue": _b(True),
    "harden-dnssec-stripped": _b(True),
    "ratelimit": _i(0),
    "target-fetch-policy": _t("3 2 1 0 0"),
    # validation
    "module-config": _t("validator iterator"),
    "val-permissive-mode": _b(False),
    "val-log-level": _i(0),
    "trust-anchor-signaling": _b(True),
    "root-key-sentinel": _b(True),
}


class OptionStore:
    """Brief: Current option values of one forwarding context.

    Inputs:
      - None (starts from the OPTIONS defaults).

    Outputs:
      - Typed accessors used by the forwarding engine.
    """

    def __init__(self) -> None:
        self._values: Dict[str, str] = {k: spec.default for k, spec in OPTIONS.items()}

    @staticmethod
    def _name(key: str) -> Optional[str]:
        if not key.endswith(":"):
            return None
        name = key[:-1]
        return name if name in OPTIONS else None

    def known(self, key: str) -> bool:
        return self._name(key) is not None

    def set(self, key: str, value: str) -> bool:
        """Brief: Parse and store a value; False when key or value is invalid."""

        name = self._name(key)
        if name is None:
            return False
        parsed = OPTIONS[name].parse(value)
        if parsed is None:
            return False
        self._values[name] = parsed
        return True

    def get(self, key: str) -> Optional[str]:
        """Brief: Raw string for a colon-terminated key, None when unknown."""

        name = self._name(key)
        if name is None:
            return None
        return self._values[name]

    def flag(self, name: str) -> bool:
        return self._values[name] == "yes"

    def number(self, name: str) -> int:
        return int(self._values[name])

    def text(self, name: str) -> str:
        return self._values[name]
