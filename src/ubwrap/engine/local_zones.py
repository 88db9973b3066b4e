"""Local zones and local data for the forwarding engine.

Brief:
  Mirrors unbound's ``local-zone`` / ``local-data`` model. Records are parsed
  and answers are synthesized with dnspython; the caller decides what to do
  when no local answer applies (normally: forward upstream).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import dns.exception
import dns.flags
import dns.message
import dns.name
import dns.rcode
import dns.rdatatype

from .records import Record, parse_rr

logger = logging.getLogger("ubwrap.engine.local")

DEFAULT_TTL = 3600

ZONE_TYPES = frozenset(
    {
        "static",
        "deny",
        "refuse",
        "transparent",
        "typetransparent",
        "redirect",
        "inform",
        "inform_deny",
        "always_transparent",
        "always_refuse",
        "always_nxdomain",
        "always_nodata",
        "always_deny",
        "nodefault",
    }
)

_TRANSPARENT = frozenset({"transparent", "inform", "always_transparent"})
_DENY = frozenset({"deny", "inform_deny"})


@dataclass(frozen=True)
class LocalDecision:
    """Brief: Result of consulting local zones for one question.

    Inputs/fields:
      - action: 'answer' (message holds the response) or 'drop' (no response
        is ever sent for this question).
      - message: Synthesized response for 'answer'.
      - zone: Apex of the zone that decided, or None for implicit zones.
    """

    action: str
    message: Optional[dns.message.Message] = None
    zone: Optional[dns.name.Name] = None


def _name(text: str) -> dns.name.Name:
    try:
        return dns.name.from_text(text.strip())
    except dns.exception.DNSException as exc:
        raise ValueError(f"invalid domain name {text!r}: {exc}") from exc


def parse_record(text: str) -> Record:
    """Brief: Parse one local-data record line (default TTL 3600, class IN).

    Inputs:
      - text: Zone-file style line, e.g. 'www.example. IN A 192.0.2.1'.

    Outputs:
      - Record.

    Raises:
      - ValueError when the line does not hold exactly one valid record.
    """

    if "\n" in text.strip():
        raise ValueError(f"expected exactly one record in {text!r}")
    return parse_rr(text, default_ttl=DEFAULT_TTL)


class LocalZones:
    """Brief: Local zone and local data store of one forwarding context.

    Inputs:
      - None.

    Outputs:
      - Instances queried via ``lookup``.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._zones: Dict[dns.name.Name, str] = {}
        self._data: Dict[dns.name.Name, List[Record]] = {}

    def add_zone(self, name: str, zone_type: str) -> None:
        """Raises ValueError for unknown zone types or bad names."""

        ztype = zone_type.strip().lower()
        if ztype not in ZONE_TYPES:
            raise ValueError(f"unknown local zone type {zone_type!r}")
        apex = _name(name)
        with self._lock:
            self._zones[apex] = ztype
        logger.debug("local-zone %s %s", apex, ztype)

    def remove_zone(self, name: str) -> None:
        """Remove a zone and every data record inside it (missing zones are ignored)."""

        apex = _name(name)
        with self._lock:
            if self._zones.pop(apex, None) is None:
                return
            for owner in [o for o in self._data if o.is_subdomain(apex)]:
                del self._data[owner]

    def add_data(self, text: str) -> None:
        rec = parse_record(text)
        with self._lock:
            bucket = self._data.setdefault(rec.name, [])
            # Replace an identical record rather than duplicating it.
            bucket[:] = [
                r
                for r in bucket
                if not (r.rdtype == rec.rdtype and r.rdclass == rec.rdclass and r.rdata == rec.rdata)
            ]
            bucket.append(rec)
        logger.debug("local-data %s", text.strip())

    def remove_data(self, text: str) -> None:
        """Remove all data at the owner name (the first token of ``text``)."""

        parts = text.split()
        if not parts:
            raise ValueError("local data removal needs a name")
        owner = _name(parts[0])
        with self._lock:
            self._data.pop(owner, None)

    def zone_type(self, name: str) -> Optional[str]:
        with self._lock:
            return self._zones.get(_name(name))

    def _closest_zone(self, name: dns.name.Name) -> Optional[dns.name.Name]:
        best: Optional[dns.name.Name] = None
        for apex in self._zones:
            if name.is_subdomain(apex) and (best is None or len(apex) > len(best)):
                best = apex
        return best

    @staticmethod
    def _reply(
        qname: dns.name.Name,
        qtype: int,
        qclass: int,
        *,
        rcode: int = dns.rcode.NOERROR,
        answers: Sequence[Record] = (),
        authority: Sequence[Record] = (),
        owner: Optional[dns.name.Name] = None,
    ) -> dns.message.Message:
        query = dns.message.make_query(qname, qtype, qclass)
        reply = dns.message.make_response(query, recursion_available=True)
        reply.id = 0
        reply.flags |= dns.flags.AA
        reply.set_rcode(rcode)
        for section, records in ((reply.answer, answers), (reply.authority, authority)):
            for rec in records:
                rrset = reply.find_rrset(
                    section, owner or rec.name, rec.rdclass, rec.rdtype, create=True
                )
                rrset.add(rec.rdata, rec.ttl)
        return reply

    def _soa(self, apex: Optional[dns.name.Name]) -> List[Record]:
        if apex is None:
            return []
        return [r for r in self._data.get(apex, []) if r.rdtype == dns.rdatatype.SOA]

    @staticmethod
    def _matching(records: Sequence[Record], qtype: int, qclass: int) -> List[Record]:
        out = [r for r in records if r.rdclass == qclass]
        if qtype == dns.rdatatype.ANY:
            return out
        exact = [r for r in out if r.rdtype == qtype]
        if exact:
            return exact
        return [r for r in out if r.rdtype == dns.rdatatype.CNAME]

    def lookup(self, qname: str, qtype: int, qclass: int) -> Optional[LocalDecision]:
        """Brief: Decide whether local zones answer a question.

        Inputs:
          - qname: Fully-qualified query name.
          - qtype / qclass: Numeric type and class.

        Outputs:
          - LocalDecision, or None when resolution should continue upstream.
        """

        name = _name(qname)
        with self._lock:
            apex = self._closest_zone(name)
            ztype = self._zones.get(apex) if apex is not None else None
            records = list(self._data.get(name, []))
            if ztype == "redirect" and apex is not None:
                records = list(self._data.get(apex, []))
            soa = self._soa(apex)

        if ztype is None:
            if not records:
                return None
            # Data without an enclosing zone behaves like a transparent zone.
            ztype = "transparent"

        def _answer(
            rcode: int = dns.rcode.NOERROR,
            answers: Sequence[Record] = (),
            auth: Sequence[Record] = (),
        ) -> LocalDecision:
            # Redirected data is renamed to the question.
            owner = name if ztype == "redirect" and answers else None
            return LocalDecision(
                action="answer",
                message=self._reply(
                    name, qtype, qclass, rcode=rcode, answers=answers, authority=auth, owner=owner
                ),
                zone=apex,
            )

        if ztype == "always_refuse":
            return _answer(dns.rcode.REFUSED)
        if ztype == "always_nxdomain":
            return _answer(dns.rcode.NXDOMAIN, auth=soa)
        if ztype == "always_nodata":
            return _answer(dns.rcode.NOERROR, auth=soa)
        if ztype == "always_deny":
            return LocalDecision(action="drop", zone=apex)
        if ztype == "nodefault":
            return None

        matched = self._matching(records, qtype, qclass)
        if matched:
            return _answer(dns.rcode.NOERROR, answers=matched)

        if ztype == "typetransparent":
            return None
        if ztype in _TRANSPARENT:
            if records:
                return _answer(dns.rcode.NOERROR, auth=soa)
            return None
        if ztype in _DENY:
            return LocalDecision(action="drop", zone=apex)
        if ztype == "refuse":
            return _answer(dns.rcode.REFUSED)
        # static / redirect
        if records:
            return _answer(dns.rcode.NOERROR, auth=soa)
        return _answer(dns.rcode.NXDOMAIN, auth=soa)
