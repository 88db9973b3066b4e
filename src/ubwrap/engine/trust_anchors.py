"""Trust-anchor parsing for the forwarding engine.

Brief:
  The forwarding engine does not validate chains itself, but it must accept
  the same trust material libunbound does and reject malformed input with a
  syntax error: DS or DNSKEY records in zone-file line form, anchor files
  (plain or RFC 5011 state files) and BIND-style ``trusted-keys`` files.
  Parsed anchors are kept as dnspython RRsets keyed by owner name.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List

import dns.name
import dns.rdatatype
import dns.rrset

from .records import parse_rr, split_rr_line

ANCHOR_TYPES = (dns.rdatatype.DS, dns.rdatatype.DNSKEY)

_TRUSTED_KEY_RE = re.compile(
    r'"?(?P<name>[^"\s]+)"?\s+(?P<flags>\d+)\s+(?P<proto>\d+)\s+(?P<alg>\d+)\s+"(?P<key>[^"]+)"\s*;'
)


def parse_anchor(text: str) -> dns.rrset.RRset:
    """Brief: Parse a single DS/DNSKEY trust anchor line.

    Inputs:
      - text: Anchor in zone-file line form.

    Outputs:
      - dns.rrset.RRset with one rdata.

    Raises:
      - ValueError for malformed text or non-anchor record types.
    """

    try:
        rec = parse_rr(text)
    except ValueError as exc:
        raise ValueError(f"invalid trust anchor {text!r}: {exc}") from exc
    if rec.rdtype not in ANCHOR_TYPES:
        raise ValueError(
            f"trust anchor must be DS or DNSKEY, got {dns.rdatatype.to_text(rec.rdtype)}"
        )
    rrset = dns.rrset.RRset(rec.name, rec.rdclass, rec.rdtype)
    rrset.add(rec.rdata, rec.ttl)
    return rrset


def _anchor_lines(lines: Iterable[str]) -> List[str]:
    out: List[str] = []
    for raw in lines:
        line = raw.split(";", 1)[0].strip()
        if not line or line.startswith("$"):
            continue
        out.append(line)
    return out


def read_anchor_file(path: str) -> List[dns.rrset.RRset]:
    """Brief: Read DS/DNSKEY anchors from a zone-format or RFC 5011 state file.

    Inputs:
      - path: Anchor file path. ';' comments (including autotrust ';;state'
        lines) and '$' directives are skipped.

    Outputs:
      - List of anchor RRsets; non-anchor records (e.g. RRSIG) are ignored.

    Raises:
      - OSError when unreadable; ValueError on malformed anchor records.
    """

    with open(path, "r", encoding="utf-8") as f:
        lines = _anchor_lines(f)
    anchors: List[dns.rrset.RRset] = []
    for line in lines:
        try:
            _, _, _, rdtype_text, _ = split_rr_line(line)
        except ValueError:
            raise ValueError(f"{path}: malformed line {line!r}") from None
        if rdtype_text.upper() not in ("DS", "DNSKEY"):
            continue
        anchors.append(parse_anchor(line))
    return anchors


def read_trusted_keys(path: str) -> List[dns.rrset.RRset]:
    """Brief: Read a BIND ``trusted-keys { ... };`` file as DNSKEY anchors.

    Inputs:
      - path: File path.

    Outputs:
      - List of DNSKEY RRsets.

    Raises:
      - OSError when unreadable; ValueError when no key entries are present.
    """

    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    # Strip // and # comments before matching.
    text = re.sub(r"(^|\s)(//|#)[^\n]*", r"\1", text)
    anchors: List[dns.rrset.RRset] = []
    for m in _TRUSTED_KEY_RE.finditer(text):
        key = "".join(m.group("key").split())
        line = f"{m.group('name')} IN DNSKEY {m.group('flags')} {m.group('proto')} {m.group('alg')} {key}"
        anchors.append(parse_anchor(line))
    if not anchors:
        raise ValueError(f"{path}: no trusted-keys entries found")
    return anchors


class AnchorStore:
    """Brief: Trust anchors configured on one forwarding context."""

    def __init__(self) -> None:
        self._anchors: Dict[dns.name.Name, List[dns.rrset.RRset]] = {}

    def add(self, rrset: dns.rrset.RRset) -> None:
        self._anchors.setdefault(rrset.name, []).append(rrset)

    def extend(self, rrsets: Iterable[dns.rrset.RRset]) -> None:
        for rrset in rrsets:
            self.add(rrset)

    def zones(self) -> List[str]:
        return sorted(n.to_text() for n in self._anchors)

    def covers(self, qname: dns.name.Name) -> bool:
        """True when some anchor owner is qname or one of its ancestors."""

        return any(qname.is_subdomain(owner) for owner in self._anchors)

    def __len__(self) -> int:
        return sum(len(v) for v in self._anchors.values())

    def __bool__(self) -> bool:
        return bool(self._anchors)
