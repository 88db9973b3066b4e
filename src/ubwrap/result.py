"""Structured resolution result decoded from the engine's response tuple."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import dns.message
import dns.rcode
import dns.rdata

from .errors import IntegrationError

# Field order of the engine response tuple.
RESULT_FIELDS: Tuple[str, ...] = (
    "qname",
    "qtype",
    "qclass",
    "data",
    "canon_name",
    "rcode",
    "answer_packet",
    "have_data",
    "nx_domain",
    "secure",
    "bogus",
    "why_bogus",
    "was_rate_limited",
    "ttl",
)
RESULT_ARITY = len(RESULT_FIELDS)


@dataclass(frozen=True)
class ResolutionResult:
    """Brief: Immutable outcome of one successful resolve call.

    Inputs/fields:
      - qname: Canonical query name echoed by the engine.
      - qtype / qclass: Query type and class numbers.
      - data: Raw rdata of each answer record (no owner/type/ttl header).
      - canon_name: Final name after following the CNAME chain, or None.
      - rcode: DNS response code.
      - answer_packet: Full wire-format answer packet.
      - have_data: True when ``data`` is non-empty.
      - nx_domain: True when the name does not exist.
      - secure: True when the answer validated as secure.
      - bogus: True when validation failed.
      - why_bogus: Validation failure reason, or None.
      - was_rate_limited: True when the engine rate-limited the query.
      - ttl: Effective answer TTL in seconds.

    Outputs:
      - Instances built via ``from_engine``.
    """

    qname: Optional[str]
    qtype: int
    qclass: int
    data: Tuple[bytes, ...]
    canon_name: Optional[str]
    rcode: int
    answer_packet: Optional[bytes]
    have_data: bool
    nx_domain: bool
    secure: bool
    bogus: bool
    why_bogus: Optional[str]
    was_rate_limited: bool
    ttl: int

    @classmethod
    def from_engine(cls, items: Sequence[Any]) -> "ResolutionResult":
        """Brief: Decode the engine's positional response tuple.

        Inputs:
          - items: Sequence of exactly RESULT_ARITY values in RESULT_FIELDS order.

        Outputs:
          - ResolutionResult.

        Raises:
          - IntegrationError when the arity is wrong.
        """

        if items is None or len(items) != RESULT_ARITY:
            got = "None" if items is None else str(len(items))
            raise IntegrationError(
                f"engine returned {got} result fields, expected {RESULT_ARITY}"
            )
        (
            qname,
            qtype,
            qclass,
            data,
            canon_name,
            rcode,
            answer_packet,
            have_data,
            nx_domain,
            secure,
            bogus,
            why_bogus,
            was_rate_limited,
            ttl,
        ) = items
        return cls(
            qname=qname,
            qtype=int(qtype),
            qclass=int(qclass),
            data=tuple(bytes(d) for d in (data or ())),
            canon_name=canon_name,
            rcode=int(rcode),
            answer_packet=bytes(answer_packet) if answer_packet is not None else None,
            have_data=bool(have_data),
            nx_domain=bool(nx_domain),
            secure=bool(secure),
            bogus=bool(bogus),
            why_bogus=why_bogus,
            was_rate_limited=bool(was_rate_limited),
            ttl=int(ttl),
        )

    @property
    def msg(self) -> Optional[bytes]:
        """Alias of ``answer_packet``."""

        return self.answer_packet

    @property
    def reason(self) -> Optional[str]:
        """Alias of ``why_bogus``."""

        return self.why_bogus

    @property
    def rcode_text(self) -> str:
        return dns.rcode.to_text(self.rcode)

    def message(self) -> Optional[dns.message.Message]:
        """Brief: Parse ``answer_packet`` with dnspython (None when absent)."""

        if not self.answer_packet:
            return None
        return dns.message.from_wire(self.answer_packet)

    def rdatas(self) -> List[dns.rdata.Rdata]:
        """Brief: Decode each entry of ``data`` as a dnspython rdata.

        Outputs:
          - list of dns.rdata.Rdata of type ``qtype`` and class ``qclass``.
            Names inside rdata are decoded without compression, which is how
            engines hand them out.
        """

        return [
            dns.rdata.from_wire(self.qclass, self.qtype, raw, 0, len(raw))
            for raw in self.data
        ]

    def as_dict(self) -> Dict[str, Any]:
        """Brief: JSON-friendly mapping with bytes rendered as hex strings."""

        out = asdict(self)
        out["data"] = [d.hex() for d in self.data]
        out["answer_packet"] = self.answer_packet.hex() if self.answer_packet else None
        out["rcode_text"] = self.rcode_text
        return out
