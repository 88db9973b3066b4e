from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional, Tuple

import dns.exception
import dns.rdataclass
import dns.rdatatype

from . import __version__
from .codec import decode_value
from .config.config_parser import AppConfig, build_resolver, load_config
from .config.logging_config import init_logging
from .errors import EngineError, IntegrationError, ResolutionError
from .resolver import Resolver
from .result import ResolutionResult

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_RESOLVE = 2


def parse_option_assignment(assignment: str) -> Tuple[str, Any]:
    """Brief: Split a ``KEY=VALUE`` command-line option.

    Inputs:
      - assignment: e.g. 'edns-buffer-size=4096'.

    Outputs:
      - (key, value); yes/no and plain digits are converted, anything else
        stays text (an empty value means None).

    Raises:
      - ValueError when there is no '=' or the key is empty.

    Example:
      >>> parse_option_assignment("do-ip6=no")
      ('do-ip6', False)
    """

    if "=" not in assignment:
        raise ValueError(f"Invalid --option value (expected KEY=VALUE), got: {assignment!r}")
    key, raw = assignment.split("=", 1)
    key = key.strip()
    if not key:
        raise ValueError(f"Invalid --option value (empty key), got: {assignment!r}")
    return key, decode_value(raw)


def parse_qtype(text: str) -> int:
    """Accept a mnemonic ('AAAA', 'type65') or a number."""

    text = text.strip()
    if text.isdigit():
        return int(text)
    try:
        return int(dns.rdatatype.from_text(text))
    except dns.exception.DNSException as exc:
        raise ValueError(f"unknown query type {text!r}") from exc


def parse_qclass(text: str) -> int:
    text = text.strip()
    if text.isdigit():
        return int(text)
    try:
        return int(dns.rdataclass.from_text(text))
    except dns.exception.DNSException as exc:
        raise ValueError(f"unknown query class {text!r}") from exc


def format_result(result: ResolutionResult) -> str:
    """Brief: Render a result as a short human-readable report."""

    lines = [
        f";; {result.qname} {dns.rdataclass.to_text(result.qclass)} "
        f"{dns.rdatatype.to_text(result.qtype)}",
        f";; rcode: {result.rcode_text}  ttl: {result.ttl}  "
        f"secure: {'yes' if result.secure else 'no'}  bogus: {'yes' if result.bogus else 'no'}",
    ]
    if result.canon_name and result.canon_name != result.qname:
        lines.append(f";; canonical name: {result.canon_name}")
    if result.why_bogus:
        lines.append(f";; why bogus: {result.why_bogus}")
    if result.was_rate_limited:
        lines.append(";; rate limited")
    for rd in result.rdatas():
        lines.append(rd.to_text())
    return "\n".join(lines)


async def _resolve_once(resolver: Resolver, name: str, qtype: int, qclass: int) -> ResolutionResult:
    async with resolver:
        return await resolver.resolve(name, qtype, qclass)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ubwrap", description="Resolve a DNS name through a validating resolver engine"
    )
    parser.add_argument("name", help="Domain name to resolve")
    parser.add_argument("qtype", nargs="?", default="A", help="Query type (default A)")
    parser.add_argument("qclass", nargs="?", default="IN", help="Query class (default IN)")
    parser.add_argument("--config", help="Path to YAML config")
    parser.add_argument("--engine", help="Engine alias or dotted path (overrides config)")
    parser.add_argument(
        "--option",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Engine option, may be repeated (yes/no and digits are converted, other values stay text)",
    )
    parser.add_argument(
        "--forward", action="append", default=[], metavar="ADDR", help="Forwarder address"
    )
    parser.add_argument(
        "--trust-anchor",
        action="append",
        default=[],
        metavar="TEXT",
        help="DS or DNSKEY trust anchor in zone-file form",
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command-line entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        0 when the resolution completed (whatever its rcode), 1 on
        configuration errors, 2 when the resolution itself failed.

    Example use:
        ubwrap --forward 9.9.9.9 --option edns-buffer-size=4096 www.ietf.org AAAA
    """
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config) if args.config else AppConfig()
        options = [parse_option_assignment(a) for a in args.option]
        qtype = parse_qtype(args.qtype)
        qclass = parse_qclass(args.qclass)
    except (OSError, ValueError) as exc:
        print(f"ubwrap: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    if args.verbose:
        cfg.logging.level = "debug"
    init_logging(cfg.logging)
    logger = logging.getLogger("ubwrap.main")
    if args.config:
        logger.debug("Loaded config from %s", args.config)

    settings = cfg.resolver
    settings.options.update(options)
    settings.forward.extend(args.forward)
    settings.trust_anchors.extend(args.trust_anchor)

    try:
        resolver = build_resolver(settings, engine=args.engine)
    except (EngineError, ImportError, KeyError, TypeError, ValueError, OSError) as exc:
        logger.error("configuration failed: %s", exc)
        return EXIT_CONFIG

    try:
        result = asyncio.run(_resolve_once(resolver, args.name, qtype, qclass))
    except (ResolutionError, IntegrationError) as exc:
        logger.error("resolution failed: %s", exc)
        return EXIT_RESOLVE

    if args.json:
        print(json.dumps(result.as_dict(), indent=2, sort_keys=True))
    else:
        print(format_result(result))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
