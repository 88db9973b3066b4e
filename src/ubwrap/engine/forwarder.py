"""Pure-Python forwarding engine built on dnspython.

Brief:
  A context stores unbound-compatible options, forwarders, stub zones, trust
  anchors and local zones. Resolution answers from local zones first, then
  from its answer cache, then by forwarding the question upstream. DNSSEC
  outcomes are taken from the upstream: when trust anchors are configured
  and the ``validator`` module is enabled, queries carry DO and AD, an AD
  answer is reported as secure and a SERVFAIL with a DNSSEC extended error
  is reported as bogus.

  Like libunbound, the context finalizes on the first resolve. After that,
  configuration changes fail with AFTERFINAL while local zone and data
  changes stay allowed.
"""

from __future__ import annotations

import logging
import ssl
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import dns.edns
import dns.exception
import dns.flags
import dns.message
import dns.name
import dns.rcode
import dns.rdataclass
import dns.rdatatype
import dns.rrset
import dns.version
from cachetools import TLRUCache

from .. import __version__
from ..errors import ErrorCode
from . import files
from .base import Engine, EngineContext, EngineResponse, engine_aliases
from .local_zones import LocalZones
from .options import OptionStore
from .transports import Upstream, query_upstream
from .trust_anchors import (
    AnchorStore,
    parse_anchor,
    read_anchor_file,
    read_trusted_keys,
)

logger = logging.getLogger("ubwrap.engine.forwarder")

# Extended DNS error codes (RFC 8914) that mean validation failed.
BOGUS_EDE_CODES = frozenset({6, 7, 8, 9, 10, 11, 12})

_MAX_CNAME_HOPS = 16


def _ede_reason(msg: dns.message.Message) -> Tuple[bool, Optional[str]]:
    """Brief: Return (is_bogus, reason) from a response's extended DNS errors."""

    for opt in getattr(msg, "options", None) or []:
        if not isinstance(opt, dns.edns.EDEOption):
            continue
        code = int(opt.code)
        if code not in BOGUS_EDE_CODES:
            continue
        text = opt.text
        if not text:
            try:
                text = dns.edns.EDECode(code).name.lower().replace("_", " ")
            except ValueError:
                text = f"extended error {code}"
        return True, text
    return False, None


def _section_rrset(
    section: List[dns.rrset.RRset], name: dns.name.Name, rdclass: int, rdtype: int
) -> Optional[dns.rrset.RRset]:
    # Scans the section itself; Message.get_rrset only sees indexed RRsets.
    for rrset in section:
        if rrset.name == name and rrset.rdclass == rdclass and rrset.rdtype == rdtype:
            return rrset
    return None


def response_items(
    qname: str,
    rrtype: int,
    rrclass: int,
    msg: dns.message.Message,
    *,
    secure: bool = False,
    bogus: bool = False,
    why_bogus: Optional[str] = None,
    min_ttl: int = 0,
    max_ttl: int = 86400,
    max_negative_ttl: int = 3600,
) -> Tuple[Any, ...]:
    """Brief: Build the 14-field engine response tuple from a DNS message.

    Inputs:
      - qname, rrtype, rrclass: The question as asked.
      - msg: Parsed response.
      - secure / bogus / why_bogus: DNSSEC outcome decided by the caller.
      - min_ttl / max_ttl / max_negative_ttl: TTL clamps.

    Outputs:
      - Tuple in ubwrap.result.RESULT_FIELDS order.

    Notes:
      - The CNAME chain starting at qname is followed through the answer
        section; ``data`` holds the uncompressed rdata of the final RRset.
    """

    rcode = msg.rcode()
    current = dns.name.from_text(qname)
    chain_ttls: List[int] = []
    final = None
    for _ in range(_MAX_CNAME_HOPS):
        final = _section_rrset(msg.answer, current, rrclass, rrtype)
        if final is not None or rrtype == dns.rdatatype.CNAME:
            break
        cname = _section_rrset(msg.answer, current, rrclass, dns.rdatatype.CNAME)
        if cname is None or not len(cname):
            break
        chain_ttls.append(int(cname.ttl))
        current = cname[0].target

    data: Tuple[bytes, ...] = ()
    if final is not None:
        data = tuple(rd.to_wire() for rd in final)

    if data:
        ttl = min([int(final.ttl)] + chain_ttls)
        ttl = max(min(ttl, max_ttl), min_ttl)
    else:
        ttl = 0
        for rrset in msg.authority:
            if rrset.rdtype == dns.rdatatype.SOA and len(rrset):
                ttl = min(int(rrset.ttl), int(rrset[0].minimum), max_negative_ttl)
                break

    canon = current.to_text() if (data or chain_ttls) else None
    return (
        qname,
        int(rrtype),
        int(rrclass),
        data,
        canon,
        int(rcode),
        msg.to_wire(),
        bool(data),
        rcode == dns.rcode.NXDOMAIN,
        bool(secure),
        bool(bogus),
        why_bogus,
        False,
        int(ttl),
    )


class ForwardingContext(EngineContext):
    """Brief: One forwarding resolution context.

    Inputs:
      - engine_name: Name used in log messages.
      - timer: Monotonic clock for cache expiry and remaining TTLs.

    Outputs:
      - EngineContext implementation.
    """

    def __init__(self, engine_name: str = "forwarder", timer=time.monotonic) -> None:
        self._name = engine_name
        self._timer = timer
        self._lock = threading.RLock()
        self.options = OptionStore()
        self.forwarders: List[Upstream] = []
        self.stubs: Dict[dns.name.Name, Tuple[List[Upstream], bool]] = {}
        self.anchors = AnchorStore()
        self.local = LocalZones()
        self._finalized = False
        self._system_upstreams: List[Upstream] = []
        self._cache: Optional[TLRUCache] = None
        self._ssl_context: Optional[ssl.SSLContext] = None

    # -- configuration -----------------------------------------------------

    def set_option(self, key: str, value: str) -> int:
        with self._lock:
            if self._finalized:
                return int(ErrorCode.AFTERFINAL)
            if not self.options.set(key, value):
                return int(ErrorCode.SYNTAX)
        logger.debug("option %s %r", key, value)
        return 0

    def get_option(self, key: str) -> Tuple[int, Optional[str]]:
        with self._lock:
            if not self.options.known(key):
                return int(ErrorCode.SYNTAX), None
            return 0, self.options.get(key)

    def set_config(self, fname: str) -> int:
        if self._finalized:
            return int(ErrorCode.AFTERFINAL)
        try:
            cfg = files.parse_engine_config(fname)
        except OSError as exc:
            logger.debug("cannot read config %s: %s", fname, exc)
            return int(ErrorCode.READFILE)
        except ValueError as exc:
            logger.debug("bad config %s: %s", fname, exc)
            return int(ErrorCode.SYNTAX)
        for name, value in cfg.options:
            status = self.set_option(name + ":", value)
            if status:
                logger.debug("config %s: rejected %s: %s", fname, name, value)
                return status
        for addr in cfg.forward_addrs:
            status = self.set_forward(addr)
            if status:
                return status
        for zone, (addrs, prime) in cfg.stubs.items():
            for addr in addrs:
                status = self.set_stub(zone, addr, prime)
                if status:
                    return status
        return 0

    def set_forward(self, addr: str) -> int:
        if self._finalized:
            return int(ErrorCode.AFTERFINAL)
        try:
            upstream = Upstream.parse(addr)
        except ValueError:
            return int(ErrorCode.SYNTAX)
        with self._lock:
            self.forwarders.append(upstream)
        return 0

    def set_stub(self, zone: str, addr: str, prime: bool) -> int:
        if self._finalized:
            return int(ErrorCode.AFTERFINAL)
        try:
            zname = dns.name.from_text(zone)
            upstream = Upstream.parse(addr)
        except (dns.exception.DNSException, ValueError):
            return int(ErrorCode.SYNTAX)
        with self._lock:
            addrs, _ = self.stubs.get(zname, ([], False))
            addrs.append(upstream)
            self.stubs[zname] = (addrs, bool(prime))
        return 0

    def set_resolv_conf(self, fname: Optional[str]) -> int:
        if self._finalized:
            return int(ErrorCode.AFTERFINAL)
        try:
            servers = files.parse_resolv_conf_nameservers(fname or files.DEFAULT_RESOLV_CONF)
        except OSError:
            return int(ErrorCode.READFILE)
        if not servers:
            # resolv.conf(5): no nameserver lines means the local host.
            servers = ["127.0.0.1"]
        for server in servers:
            status = self.set_forward(server)
            if status:
                return status
        return 0

    def set_hosts(self, fname: Optional[str]) -> int:
        if self._finalized:
            return int(ErrorCode.AFTERFINAL)
        try:
            entries = files.parse_hosts_file(fname or files.DEFAULT_HOSTS)
        except OSError:
            return int(ErrorCode.READFILE)
        except ValueError:
            return int(ErrorCode.SYNTAX)
        for name, ip in entries:
            rrtype = "AAAA" if ":" in ip else "A"
            try:
                self.local.add_data(f"{name} {rrtype} {ip}")
            except ValueError:
                return int(ErrorCode.SYNTAX)
        return 0

    def add_trust_anchor(self, anchor: str) -> int:
        if self._finalized:
            return int(ErrorCode.AFTERFINAL)
        try:
            rrset = parse_anchor(anchor)
        except ValueError:
            return int(ErrorCode.SYNTAX)
        with self._lock:
            self.anchors.add(rrset)
        return 0

    def _add_anchor_list(self, loader, fname: str) -> int:
        if self._finalized:
            return int(ErrorCode.AFTERFINAL)
        try:
            rrsets = loader(fname)
        except OSError:
            return int(ErrorCode.READFILE)
        except ValueError:
            return int(ErrorCode.SYNTAX)
        with self._lock:
            self.anchors.extend(rrsets)
        return 0

    def add_trust_anchor_file(self, fname: str) -> int:
        return self._add_anchor_list(read_anchor_file, fname)

    def add_trust_anchor_autr(self, fname: str) -> int:
        # The file is only read; automated RFC 5011 rollover is not performed.
        return self._add_anchor_list(read_anchor_file, fname)

    def add_trusted_keys(self, fname: str) -> int:
        return self._add_anchor_list(read_trusted_keys, fname)

    # -- local zones and data -----------------------------------------------

    def add_zone(self, name: str, zone_type: str) -> int:
        try:
            dns.name.from_text(name)
            self.local.add_zone(name, zone_type)
        except (dns.exception.DNSException, ValueError):
            return int(ErrorCode.SYNTAX)
        return 0

    def remove_zone(self, name: str) -> int:
        try:
            dns.name.from_text(name)
        except dns.exception.DNSException:
            return int(ErrorCode.SYNTAX)
        self.local.remove_zone(name)
        self._flush_cache()
        return 0

    def add_data(self, record: str) -> int:
        try:
            self.local.add_data(record)
        except ValueError:
            return int(ErrorCode.SYNTAX)
        self._flush_cache()
        return 0

    def remove_data(self, record: str) -> int:
        try:
            self.local.remove_data(record)
        except ValueError:
            return int(ErrorCode.SYNTAX)
        self._flush_cache()
        return 0

    # -- resolution ---------------------------------------------------------

    def _finalize(self) -> None:
        with self._lock:
            if self._finalized:
                return
            self._finalized = True
            size = self.options.number("msg-cache-size")
            if size > 0:
                self._cache = TLRUCache(
                    maxsize=size,
                    ttu=lambda _key, value, now: now + value[1],
                    timer=self._timer,
                    getsizeof=lambda value: len(value[0][6] or b"") + 64,
                )
            if not self.forwarders:
                try:
                    servers = files.parse_resolv_conf_nameservers()
                except OSError:
                    servers = []
                for server in servers:
                    try:
                        self._system_upstreams.append(Upstream.parse(server))
                    except ValueError:
                        logger.debug("ignoring resolv.conf nameserver %r", server)
            if self.options.flag("tls-upstream"):
                bundle = self.options.text("tls-cert-bundle") or None
                self._ssl_context = ssl.create_default_context(cafile=bundle)
        logger.debug(
            "finalized: %d forwarders, %d stub zones, %d trust anchors",
            len(self.forwarders),
            len(self.stubs),
            len(self.anchors),
        )

    def _flush_cache(self) -> None:
        with self._lock:
            if self._cache is not None:
                self._cache.clear()

    def _cache_get(self, key) -> Optional[Tuple[Any, ...]]:
        with self._lock:
            if self._cache is None:
                return None
            entry = self._cache.get(key)
        if entry is None:
            return None
        items, ttl, stored = entry
        remaining = max(ttl - int(self._timer() - stored), 0)
        return items[:13] + (remaining,)

    def _cache_put(self, key, items: Tuple[Any, ...]) -> None:
        ttl = int(items[13])
        if ttl <= 0:
            return
        with self._lock:
            if self._cache is None:
                return
            value = (items, ttl, self._timer())
            if self._cache.getsizeof(value) > self._cache.maxsize:
                return
            self._cache[key] = value

    def _upstreams_for(self, qname: dns.name.Name) -> Tuple[List[Upstream], bool]:
        """Brief: Return (candidates, recursion_desired) for a query name."""

        with self._lock:
            best: Optional[dns.name.Name] = None
            for zone in self.stubs:
                if qname.is_subdomain(zone) and (best is None or len(zone) > len(best)):
                    best = zone
            implicit = False
            if best is not None:
                candidates, rd = list(self.stubs[best][0]), False
            elif self.forwarders:
                candidates, rd = list(self.forwarders), True
            else:
                # System nameservers are often a local stub such as 127.0.0.53.
                candidates, rd, implicit = list(self._system_upstreams), True, True

        opts = self.options
        out: List[Upstream] = []
        for up in candidates:
            if up.version == 4 and not opts.flag("do-ip4"):
                continue
            if up.version == 6 and not opts.flag("do-ip6"):
                continue
            if up.is_loopback and not implicit and opts.flag("do-not-query-localhost"):
                continue
            out.append(up)
        return out, rd

    def _transport(self) -> Optional[str]:
        opts = self.options
        if opts.flag("tls-upstream"):
            return "tls"
        if opts.flag("tcp-upstream") or not opts.flag("do-udp"):
            return "tcp" if opts.flag("do-tcp") else None
        return "udp"

    def _validating(self, qname: dns.name.Name) -> bool:
        return "validator" in self.options.text("module-config").split() and self.anchors.covers(qname)

    async def _exchange(
        self, query: dns.message.Message, qname: dns.name.Name
    ) -> Optional[dns.message.Message]:
        candidates, rd = self._upstreams_for(qname)
        transport = self._transport()
        if not candidates or transport is None:
            logger.debug("no usable upstream for %s", qname)
            return None
        if not rd:
            query.flags &= ~dns.flags.RD
        timeout = max(self.options.number("unknown-server-time-limit"), 1) / 1000.0
        attempts = max(self.options.number("outbound-msg-retry"), 1)
        for attempt in range(attempts):
            upstream = candidates[attempt % len(candidates)]
            resp, err = await query_upstream(
                query,
                upstream,
                transport=transport,
                timeout=timeout,
                tcp_fallback=self.options.flag("do-tcp"),
                ssl_context=self._ssl_context,
            )
            if resp is not None:
                return resp
            logger.debug("attempt %d for %s via %s failed: %s", attempt + 1, qname, upstream, err)
        return None

    def _make_query(
        self, qname: dns.name.Name, rrtype: int, rrclass: int, *, validating: bool, cd: bool = False
    ) -> dns.message.Message:
        query = dns.message.make_query(
            qname,
            rrtype,
            rrclass,
            use_edns=0,
            payload=self.options.number("edns-buffer-size"),
            want_dnssec=validating,
        )
        if validating:
            query.flags |= dns.flags.AD
        if cd:
            query.flags |= dns.flags.CD
        return query

    async def resolve(self, name: str, rrtype: int, rrclass: int) -> EngineResponse:
        self._finalize()
        if not (0 <= rrtype <= 0xFFFF and 0 <= rrclass <= 0xFFFF):
            return int(ErrorCode.SYNTAX), None
        try:
            qname = dns.name.from_text(name)
        except dns.exception.DNSException:
            return int(ErrorCode.SYNTAX), None

        opts = self.options
        ttl_bounds = dict(
            min_ttl=opts.number("cache-min-ttl"),
            max_ttl=opts.number("cache-max-ttl"),
            max_negative_ttl=opts.number("cache-max-negative-ttl"),
        )

        decision = self.local.lookup(name, rrtype, rrclass)
        if decision is not None:
            if decision.action == "drop":
                logger.debug("dropping %s: local zone %s", name, decision.zone)
                return int(ErrorCode.SERVFAIL), None
            return 0, response_items(name, rrtype, rrclass, decision.message, **ttl_bounds)

        key = (qname.to_text().lower(), rrtype, rrclass)
        cached = self._cache_get(key)
        if cached is not None:
            # Keys are case-folded; report the name as asked.
            return 0, (name,) + cached[1:]

        validating = self._validating(qname)
        try:
            query = self._make_query(qname, rrtype, rrclass, validating=validating)
        except (ValueError, dns.exception.DNSException) as exc:
            logger.debug("cannot build query for %s: %s", name, exc)
            return int(ErrorCode.SYNTAX), None
        resp = await self._exchange(query, qname)
        if resp is None:
            return int(ErrorCode.SERVFAIL), None

        secure = bogus = False
        why_bogus: Optional[str] = None
        if validating:
            rcode = resp.rcode()
            if rcode in (dns.rcode.NOERROR, dns.rcode.NXDOMAIN):
                secure = bool(resp.flags & dns.flags.AD)
            elif rcode == dns.rcode.SERVFAIL:
                bogus, reason = _ede_reason(resp)
                if bogus:
                    why_bogus = "validation failure <%s %s %s>: %s" % (
                        qname.to_text(),
                        dns.rdatatype.to_text(rrtype),
                        dns.rdataclass.to_text(rrclass),
                        reason,
                    )
                    if opts.flag("val-permissive-mode"):
                        unchecked = await self._exchange(
                            self._make_query(qname, rrtype, rrclass, validating=True, cd=True),
                            qname,
                        )
                        if unchecked is not None:
                            resp = unchecked

        items = response_items(
            name,
            rrtype,
            rrclass,
            resp,
            secure=secure,
            bogus=bogus,
            why_bogus=why_bogus,
            **ttl_bounds,
        )
        if not bogus:
            self._cache_put(key, items)
        return 0, items

    def close(self) -> None:
        self._flush_cache()


@engine_aliases("forwarder", "forward", "dnspython")
class ForwardingEngine(Engine):
    """Brief: Default engine: forwarding resolver with local zones and a cache."""

    name = "forwarder"

    def version(self) -> str:
        return f"ubwrap-forwarder {__version__} (dnspython {dns.version.version})"

    def create_context(self) -> ForwardingContext:
        return ForwardingContext(engine_name=self.name)
