"""Engine adapter over the libunbound Python bindings.

Brief:
  Wraps the ``unbound`` module shipped with the unbound distribution
  (``python3-unbound`` on most systems; it is not published on PyPI). The
  module is imported when the engine is constructed so that ubwrap stays
  importable without it.

  ``ub_resolve`` is blocking and thread-safe, so each resolution runs in the
  event loop's default executor. The result is converted to the 14-field
  tuple inside the worker thread, before libunbound frees it.

Inputs:
  - Optional pre-imported ``unbound`` module (tests inject a stand-in).

Outputs:
  - LibunboundEngine / LibunboundContext instances.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from typing import Any, Optional, Tuple

from ..errors import EngineUnavailable, ErrorCode
from .base import Engine, EngineContext, EngineResponse, engine_aliases

logger = logging.getLogger("ubwrap.engine.libunbound")


def _import_unbound():
    try:
        return importlib.import_module("unbound")
    except ImportError as exc:
        raise EngineUnavailable(
            "the libunbound engine needs the 'unbound' Python bindings "
            "(install your distribution's python3-unbound package)"
        ) from exc


def _raw_items(data: Any) -> Tuple[bytes, ...]:
    """Brief: Extract the list of raw rdata byte strings from ub_result.data."""

    if data is None:
        return ()
    raw = getattr(data, "raw", data)
    return tuple(bytes(item) for item in (raw or ()))


def _packet_bytes(result: Any) -> Optional[bytes]:
    pkt = getattr(result, "packet", None)
    if pkt is None:
        return None
    if isinstance(pkt, (bytes, bytearray, memoryview)):
        return bytes(pkt)
    # Some binding versions hand out the packet as a list of ints.
    return bytes(bytearray(pkt))


def result_items(result: Any) -> Tuple[Any, ...]:
    """Brief: Convert a ub_result object into the engine response tuple.

    Inputs:
      - result: ub_result from the bindings.

    Outputs:
      - 14-field tuple in ubwrap.result.RESULT_FIELDS order.
    """

    return (
        result.qname,
        int(result.qtype),
        int(result.qclass),
        _raw_items(result.data),
        getattr(result, "canonname", None) or None,
        int(result.rcode),
        _packet_bytes(result),
        bool(result.havedata),
        bool(result.nxdomain),
        bool(result.secure),
        bool(result.bogus),
        getattr(result, "why_bogus", None) or None,
        # was_ratelimited only exists in bindings for unbound >= 1.8.
        bool(getattr(result, "was_ratelimited", False)),
        int(getattr(result, "ttl", 0) or 0),
    )


class LibunboundContext(EngineContext):
    """Brief: EngineContext backed by one ``unbound.ub_ctx``."""

    def __init__(self, module: Any) -> None:
        self._ub = module
        self._ctx = module.ub_ctx()
        # Keep the library quiet unless asked otherwise via options.
        self._ctx.debuglevel(0)

    def set_option(self, key: str, value: str) -> int:
        return int(self._ctx.set_option(key, value))

    def get_option(self, key: str) -> Tuple[int, Optional[str]]:
        status, value = self._ctx.get_option(key)
        if int(status) != 0:
            return int(status), None
        return 0, value

    def set_config(self, fname: str) -> int:
        return int(self._ctx.config(fname))

    def set_forward(self, addr: str) -> int:
        return int(self._ctx.set_fwd(addr))

    def set_stub(self, zone: str, addr: str, prime: bool) -> int:
        return int(self._ctx.set_stub(zone, addr, 1 if prime else 0))

    def set_resolv_conf(self, fname: Optional[str]) -> int:
        return int(self._ctx.resolvconf(fname))

    def set_hosts(self, fname: Optional[str]) -> int:
        return int(self._ctx.hosts(fname))

    def add_trust_anchor(self, anchor: str) -> int:
        return int(self._ctx.add_ta(anchor))

    def add_trust_anchor_file(self, fname: str) -> int:
        return int(self._ctx.add_ta_file(fname))

    def add_trust_anchor_autr(self, fname: str) -> int:
        return int(self._ctx.add_ta_autr(fname))

    def add_trusted_keys(self, fname: str) -> int:
        return int(self._ctx.trustedkeys(fname))

    def add_zone(self, name: str, zone_type: str) -> int:
        return int(self._ctx.zone_add(name, zone_type))

    def remove_zone(self, name: str) -> int:
        return int(self._ctx.zone_remove(name))

    def add_data(self, record: str) -> int:
        return int(self._ctx.data_add(record))

    def remove_data(self, record: str) -> int:
        return int(self._ctx.data_remove(record))

    def _resolve_blocking(self, name: str, rrtype: int, rrclass: int) -> EngineResponse:
        status, result = self._ctx.resolve(name, rrtype, rrclass)
        if int(status) != 0:
            return int(status), None
        if result is None:
            return int(ErrorCode.SERVFAIL), None
        return 0, result_items(result)

    async def resolve(self, name: str, rrtype: int, rrclass: int) -> EngineResponse:
        loop = asyncio.get_running_loop()
        logger.debug("ub_resolve %s type=%d class=%d", name, rrtype, rrclass)
        return await loop.run_in_executor(
            None, self._resolve_blocking, name, rrtype, rrclass
        )

    def strerror(self, status: int) -> str:
        msg = self._ub.ub_strerror(int(status))
        return msg or "unknown error"

    def close(self) -> None:
        # ub_ctx is released when the wrapper is collected; drop our reference.
        self._ctx = None


@engine_aliases("libunbound", "unbound")
class LibunboundEngine(Engine):
    """Brief: Real validating recursive resolver via libunbound.

    Inputs:
      - module: Optional already-imported bindings module.

    Outputs:
      - Engine creating LibunboundContext instances.
    """

    name = "libunbound"

    def __init__(self, module: Any = None) -> None:
        self._module = module if module is not None else _import_unbound()

    def version(self) -> str:
        return str(self._module.ub_version())

    def create_context(self) -> LibunboundContext:
        return LibunboundContext(self._module)
