"""Zone-file record lines.

Brief:
  Local data, trust anchors and hosts entries all arrive as single
  zone-file style lines ('owner [ttl] [class] type rdata'). They are split
  here and turned into dnspython objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import dns.exception
import dns.name
import dns.rdata
import dns.rdataclass
import dns.rdatatype


def split_rr_line(text: str) -> Tuple[str, Optional[int], str, str, str]:
    """Brief: Split one zone-file record line into its fields.

    Inputs:
      - text: e.g. '. 172800 IN DS 20326 8 2 E06D...'. TTL and class are
        optional and may appear in either order.

    Outputs:
      - (owner, ttl_or_None, class_text, type_text, rdata_text).

    Raises:
      - ValueError when the line has no type or no rdata.
    """

    tokens = text.split()
    if len(tokens) < 3:
        raise ValueError(f"record line too short: {text!r}")
    owner = tokens[0]
    ttl: Optional[int] = None
    rdclass = "IN"
    idx = 1
    for _ in range(2):
        if idx >= len(tokens):
            break
        tok = tokens[idx]
        if ttl is None and tok.isdigit():
            ttl = int(tok)
            idx += 1
            continue
        try:
            dns.rdataclass.from_text(tok)
        except dns.rdataclass.UnknownRdataclass:
            break
        # Classes and types never share a mnemonic.
        rdclass = tok.upper()
        idx += 1
    if idx + 1 >= len(tokens):
        raise ValueError(f"record line has no rdata: {text!r}")
    return owner, ttl, rdclass, tokens[idx], " ".join(tokens[idx + 1 :])


@dataclass(frozen=True)
class Record:
    """Brief: One parsed resource record.

    Inputs/fields:
      - name: Absolute owner name.
      - ttl: TTL in seconds.
      - rdclass / rdtype: Class and type.
      - rdata: dnspython rdata.
    """

    name: dns.name.Name
    ttl: int
    rdclass: dns.rdataclass.RdataClass
    rdtype: dns.rdatatype.RdataType
    rdata: dns.rdata.Rdata


def parse_rr(text: str, default_ttl: int = 0) -> Record:
    """Brief: Parse one zone-file record line.

    Inputs:
      - text: Record line; relative names are taken relative to the root.
      - default_ttl: TTL used when the line carries none.

    Outputs:
      - Record.

    Raises:
      - ValueError for malformed lines, unknown types or bad rdata.
    """

    try:
        owner, ttl, rdclass_text, rdtype_text, rdata_text = split_rr_line(text)
        rdclass = dns.rdataclass.from_text(rdclass_text)
        rdtype = dns.rdatatype.from_text(rdtype_text)
        name = dns.name.from_text(owner)
        rdata = dns.rdata.from_text(rdclass, rdtype, rdata_text, origin=dns.name.root)
    except (dns.exception.DNSException, ValueError) as exc:
        raise ValueError(f"invalid record {text!r}: {exc}") from exc
    return Record(
        name=name,
        ttl=default_ttl if ttl is None else ttl,
        rdclass=rdclass,
        rdtype=rdtype,
        rdata=rdata,
    )
