"""File readers used by the forwarding engine.

Brief:
  resolv.conf nameservers, hosts files and unbound.conf-style configuration
  files. Each reader raises OSError when the file cannot be read and
  ValueError when its contents are malformed; the engine maps those to
  READFILE and SYNTAX statuses.
"""

from __future__ import annotations

import ipaddress
import pathlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

DEFAULT_RESOLV_CONF = "/etc/resolv.conf"
DEFAULT_HOSTS = "/etc/hosts"

_CLAUSES = frozenset(
    {
        "server",
        "forward-zone",
        "stub-zone",
        "auth-zone",
        "view",
        "rpz",
        "remote-control",
        "cachedb",
        "dnstap",
        "python",
        "dynlib",
    }
)


def parse_resolv_conf_nameservers(path: str = DEFAULT_RESOLV_CONF) -> List[str]:
    """Brief: Parse nameserver entries from a resolv.conf file.

    Inputs:
      - path: Filesystem path to a resolv.conf-format file.

    Outputs:
      - List of nameserver IP strings in the order encountered.

    Notes:
      - search/domain/options directives are ignored; only nameservers
        matter to a forwarder.
    """

    servers: List[str] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            raw = line.split("#", 1)[0].split(";", 1)[0].strip()
            if not raw:
                continue
            parts = raw.split()
            if len(parts) >= 2 and parts[0].lower() == "nameserver":
                servers.append(parts[1])
    return servers


def parse_hosts_file(path: str = DEFAULT_HOSTS) -> List[Tuple[str, str]]:
    """Brief: Read a hosts file into (hostname, address) pairs.

    Inputs:
      - path: Hosts file path.

    Outputs:
      - List of (hostname, ip) tuples in file order. IPv6 addresses with a
        zone index (fe80::1%eth0) are skipped since they cannot be served.

    Raises:
      - ValueError on a line with an address but no hostname, or an invalid
        address.
    """

    entries: List[Tuple[str, str]] = []
    hosts_path = pathlib.Path(path)
    with hosts_path.open("r", encoding="utf-8") as f:
        for lineno, raw_line in enumerate(f, start=1):
            line = raw_line.split("#", 1)[0].strip()
            if not line:
                continue
            parts = line.split()
            if len(parts) < 2:
                raise ValueError(f"File {hosts_path} malformed line {lineno}: {raw_line!r}")
            ip = parts[0]
            if "%" in ip:
                continue
            ipaddress.ip_address(ip)
            for name in parts[1:]:
                entries.append((name, ip))
    return entries


@dataclass
class EngineConfigFile:
    """Brief: Parsed contents of an unbound.conf-style file.

    Inputs/fields:
      - options: server: clause settings in file order as (name, value).
      - forward_addrs: forward-addr entries of the root forward-zone.
      - stubs: stub-zone name -> (addresses, prime flag).
    """

    options: List[Tuple[str, str]] = field(default_factory=list)
    forward_addrs: List[str] = field(default_factory=list)
    stubs: Dict[str, Tuple[List[str], bool]] = field(default_factory=dict)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_engine_config(path: str) -> EngineConfigFile:
    """Brief: Parse the subset of unbound.conf the forwarding engine honours.

    Inputs:
      - path: Configuration file path.

    Outputs:
      - EngineConfigFile.

    Notes:
      - Understood clauses: ``server:``, ``forward-zone:`` (name "." only is
        applied as forwarders) and ``stub-zone:``. Other clauses are skipped.
      - Each setting is ``name: value`` on its own line; '#' starts a comment.
      - A zone clause is applied when the next clause starts, so its
        addresses may come before or after its ``name:``.
    """

    cfg = EngineConfigFile()
    section: Optional[str] = None
    zone_name: Optional[str] = None
    zone_addrs: List[str] = []
    zone_prime = False

    def _flush() -> None:
        if zone_name is None:
            return
        if section == "forward-zone" and zone_name.rstrip(".") == "":
            cfg.forward_addrs.extend(zone_addrs)
        elif section == "stub-zone":
            cfg.stubs[zone_name] = (list(zone_addrs), zone_prime)

    with open(path, "r", encoding="utf-8") as f:
        for lineno, raw_line in enumerate(f, start=1):
            line = raw_line.split("#", 1)[0].strip()
            if not line:
                continue
            if ":" not in line:
                raise ValueError(f"{path}:{lineno}: expected 'name: value', got {line!r}")
            name, _, value = line.partition(":")
            name = name.strip()
            value = _unquote(value)

            if not value and name in _CLAUSES:
                _flush()
                section = name
                zone_name, zone_addrs, zone_prime = None, [], False
                continue

            if section == "server":
                cfg.options.append((name, value))
            elif section in ("forward-zone", "stub-zone"):
                if name == "name":
                    zone_name = value
                elif name in ("forward-addr", "stub-addr"):
                    zone_addrs.append(value)
                elif name == "stub-prime":
                    zone_prime = value == "yes"
            elif section is None:
                raise ValueError(f"{path}:{lineno}: setting {name!r} outside of a clause")
    _flush()
    return cfg
