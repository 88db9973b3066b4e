"""Resolver handle: the public facade over one engine context.

Brief:
  ``Resolver`` owns exactly one engine context for its lifetime. Configuration
  calls are synchronous and return the handle so they can be chained;
  ``resolve`` is a coroutine. Engine status codes are turned into the
  exceptions of ``ubwrap.errors``; caller mistakes raise ContractError before
  the engine is touched.

Example:
  >>> async def main():
  ...     async with Resolver() as r:
  ...         r.set_option("edns-buffer-size", 4096).set_option("do-ip6", False)
  ...         res = await r.resolve("www.ietf.org")
  ...         return res.have_data
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, List, Optional, Union

from .codec import OptionValue, decode_value, encode_value, option_key
from .engine.base import Engine, EngineContext
from .engine.registry import load_engine
from .errors import (
    ContractError,
    ErrorCode,
    OptionLookup,
    classify_status,
    is_unknown_option,
)
from .names import fqdn
from .result import ResolutionResult

logger = logging.getLogger("ubwrap.resolver")

_UINT32_MAX = 0xFFFFFFFF

EngineSpec = Union[None, str, Engine]


def _require_str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise ContractError(f"{what} must be a str, got {type(value).__name__}")
    return value


def _require_path(value: Any, what: str, *, optional: bool = False) -> Optional[str]:
    if value is None and optional:
        return None
    if isinstance(value, os.PathLike):
        value = os.fspath(value)
    if not isinstance(value, str):
        raise ContractError(f"{what} must be a path string, got {type(value).__name__}")
    return value


def _require_uint32(value: Any, what: str) -> int:
    # bool is an int subclass but never a valid type/class number.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ContractError(f"{what} must be an int, got {type(value).__name__}")
    if not 0 <= value <= _UINT32_MAX:
        raise ContractError(f"{what} must be between 0 and {_UINT32_MAX}, got {value}")
    return value


def _make_engine(engine: EngineSpec) -> Engine:
    if engine is None or isinstance(engine, str):
        return load_engine(engine)
    if isinstance(engine, Engine):
        return engine
    raise ContractError(
        f"engine must be None, an alias or an Engine instance, got {type(engine).__name__}"
    )


def engine_version(engine: EngineSpec = None) -> str:
    """Brief: Return the version string of an engine without creating a Resolver.

    Inputs:
      - engine: Alias, Engine instance, or None for the default engine.

    Outputs:
      - str version reported by the engine.
    """

    return _make_engine(engine).version()


class Resolver:
    """Brief: Handle owning one engine context.

    Inputs:
      - engine: Engine alias ('forwarder', 'libunbound', ...), an Engine
        instance, or None for the default engine.

    Outputs:
      - Resolver instance; use as a (async) context manager or call
        close()/aclose() when done.

    Notes:
      - ``finalized`` turns True after the first successful zone or data
        change or the first resolve. It is informational only: no operation
        is refused because of it. Engines may refuse settings of their own
        accord (libunbound does after the first resolve).
      - Configuration calls are not locked; callers issuing them from
        several tasks must serialize them.
    """

    def __init__(self, engine: EngineSpec = None) -> None:
        self._engine = _make_engine(engine)
        self._ctx: Optional[EngineContext] = self._engine.create_context()
        self._finalized = False
        self._closed = False
        self._pending = 0
        self._release_deferred = False
        self._idle_waiters: List[asyncio.Future] = []
        logger.debug("created %s context", self._engine.name)

    # -- state --------------------------------------------------------------

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of resolutions issued on this handle that have not settled."""

        return self._pending

    def version(self) -> str:
        return self._engine.version()

    def _context(self) -> EngineContext:
        if self._closed or self._ctx is None:
            raise ContractError("resolver is closed")
        return self._ctx

    def _error(self, ctx: EngineContext, status: int, operation: str):
        err = classify_status(
            status, operation, engine_name=self._engine.name, text=ctx.strerror(status)
        )
        logger.warning("%s failed: %s", operation, err)
        return err

    def _check(self, ctx: EngineContext, status: int, operation: str) -> None:
        if status:
            raise self._error(ctx, status, operation)

    # -- options ------------------------------------------------------------

    def set_option(self, key: str, value: OptionValue) -> "Resolver":
        """Brief: Set an engine option from a Python value.

        Inputs:
          - key: Option name, with or without the trailing colon.
          - value: None, bool, int or str.

        Outputs:
          - self.

        Raises:
          - ContractError for a non-str key or an unsupported value type.
          - EngineOptionError when the engine rejects the key or value.
          - EngineOperationError for other refusals (e.g. after finalize).
        """

        wire_key = option_key(key)
        wire_value = encode_value(value)
        ctx = self._context()
        self._check(ctx, ctx.set_option(wire_key, wire_value), "set_option")
        logger.debug("set option %s %r", wire_key, wire_value)
        return self

    def lookup_option(self, key: str) -> OptionLookup:
        """Brief: Look up an option without raising for unknown keys.

        Inputs:
          - key: Option name.

        Outputs:
          - OptionLookup; ``found`` is False when the engine does not know
            the key.

        Raises:
          - ContractError for a non-str key; EngineError for failures other
            than "unknown option".
        """

        wire_key = option_key(key)
        ctx = self._context()
        status, raw = ctx.get_option(wire_key)
        if not status:
            return OptionLookup(key=wire_key, found=True, raw=raw)
        if is_unknown_option(status):
            return OptionLookup.unknown(wire_key)
        raise self._error(ctx, status, "get_option")

    def get_option(self, key: str) -> OptionValue:
        """Return the decoded value; EngineOptionError for unknown keys."""

        found = self.lookup_option(key)
        if not found.found:
            raise self._error(self._context(), int(ErrorCode.SYNTAX), "get_option")
        return decode_value(found.raw)

    def has_option(self, key: str) -> bool:
        return self.lookup_option(key).found

    def try_option(self, key: str, value: OptionValue) -> "Resolver":
        """Set the option only when the engine knows it; always returns self."""

        if self.has_option(key):
            self.set_option(key, value)
        else:
            logger.debug("skipping unsupported option %s", option_key(key))
        return self

    # -- configuration pass-throughs -----------------------------------------

    def set_config(self, file: Union[str, "os.PathLike[str]"]) -> "Resolver":
        """Load an engine configuration file (unbound.conf syntax)."""

        path = _require_path(file, "file")
        ctx = self._context()
        self._check(ctx, ctx.set_config(path), "set_config")
        logger.debug("loaded engine config %s", path)
        return self

    def set_forward(self, addr: str) -> "Resolver":
        addr = _require_str(addr, "addr")
        ctx = self._context()
        self._check(ctx, ctx.set_forward(addr), "set_forward")
        logger.debug("forwarding to %s", addr)
        return self

    def set_stub(self, zone: str, addr: str, prime: bool = False) -> "Resolver":
        zone = _require_str(zone, "zone")
        addr = _require_str(addr, "addr")
        if not isinstance(prime, bool):
            raise ContractError(f"prime must be a bool, got {type(prime).__name__}")
        ctx = self._context()
        self._check(ctx, ctx.set_stub(zone, addr, prime), "set_stub")
        logger.debug("stub zone %s -> %s (prime=%s)", zone, addr, prime)
        return self

    def set_resolv_conf(self, file: Optional[str] = None) -> "Resolver":
        """Forward to the nameservers of a resolv.conf file (system default when None)."""

        path = _require_path(file, "file", optional=True)
        ctx = self._context()
        self._check(ctx, ctx.set_resolv_conf(path), "set_resolv_conf")
        return self

    def set_hosts(self, file: Optional[str] = None) -> "Resolver":
        """Serve the entries of a hosts file as local data (system default when None)."""

        path = _require_path(file, "file", optional=True)
        ctx = self._context()
        self._check(ctx, ctx.set_hosts(path), "set_hosts")
        return self

    def add_trust_anchor(self, anchor: str) -> "Resolver":
        """Add a DS or DNSKEY trust anchor in zone-file line form."""

        anchor = _require_str(anchor, "anchor")
        ctx = self._context()
        self._check(ctx, ctx.add_trust_anchor(anchor), "add_trust_anchor")
        logger.debug("trust anchor %s", anchor.split(None, 1)[0] if anchor.strip() else anchor)
        return self

    def add_trust_anchor_file(
        self, file: Union[str, "os.PathLike[str]"], auto_retrieval: bool = False
    ) -> "Resolver":
        """Brief: Add trust anchors from a file.

        Inputs:
          - file: Zone-format anchor file.
          - auto_retrieval: When True the file is an RFC 5011 state file the
            engine keeps updated.

        Outputs:
          - self.
        """

        path = _require_path(file, "file")
        if not isinstance(auto_retrieval, bool):
            raise ContractError(
                f"auto_retrieval must be a bool, got {type(auto_retrieval).__name__}"
            )
        ctx = self._context()
        if auto_retrieval:
            self._check(ctx, ctx.add_trust_anchor_autr(path), "add_trust_anchor_autr")
        else:
            self._check(ctx, ctx.add_trust_anchor_file(path), "add_trust_anchor_file")
        return self

    def add_trusted_keys(self, file: Union[str, "os.PathLike[str]"]) -> "Resolver":
        """Add trust anchors from a BIND-style trusted-keys file."""

        path = _require_path(file, "file")
        ctx = self._context()
        self._check(ctx, ctx.add_trusted_keys(path), "add_trusted_keys")
        return self

    # -- local zones and data -----------------------------------------------

    def add_zone(self, name: str, zone_type: str) -> "Resolver":
        name = _require_str(name, "name")
        zone_type = _require_str(zone_type, "zone_type")
        ctx = self._context()
        self._check(ctx, ctx.add_zone(name, zone_type), "add_zone")
        self._finalized = True
        logger.debug("local zone %s %s", name, zone_type)
        return self

    def remove_zone(self, name: str) -> "Resolver":
        name = _require_str(name, "name")
        ctx = self._context()
        self._check(ctx, ctx.remove_zone(name), "remove_zone")
        self._finalized = True
        return self

    def add_data(self, record: str) -> "Resolver":
        record = _require_str(record, "record")
        ctx = self._context()
        self._check(ctx, ctx.add_data(record), "add_data")
        self._finalized = True
        logger.debug("local data %s", record)
        return self

    def remove_data(self, record: str) -> "Resolver":
        record = _require_str(record, "record")
        ctx = self._context()
        self._check(ctx, ctx.remove_data(record), "remove_data")
        self._finalized = True
        return self

    # -- resolution ---------------------------------------------------------

    async def resolve(self, name: str, qtype: int = 1, qclass: int = 1) -> ResolutionResult:
        """Brief: Resolve one question.

        Inputs:
          - name: Domain name; a trailing dot is added when missing.
          - qtype: Query type number (default 1, A).
          - qclass: Query class number (default 1, IN).

        Outputs:
          - ResolutionResult. DNSSEC outcome (secure/bogus/why_bogus) and
            rate limiting are reported as data, not raised.

        Raises:
          - ContractError for bad argument types/ranges or a closed handle.
          - ResolutionError when the engine fails to resolve.
          - IntegrationError when the engine returns a malformed response.
        """

        name = _require_str(name, "name")
        qtype = _require_uint32(qtype, "qtype")
        qclass = _require_uint32(qclass, "qclass")
        ctx = self._context()
        qname = fqdn(name)

        self._finalized = True
        self._pending += 1
        try:
            status, items = await ctx.resolve(qname, qtype, qclass)
        finally:
            self._pending -= 1
            if not self._pending:
                self._settled()

        self._check(ctx, status, "resolve")
        return ResolutionResult.from_engine(items)

    # -- teardown -----------------------------------------------------------

    def _settled(self) -> None:
        waiters, self._idle_waiters = self._idle_waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_result(None)
        if self._release_deferred:
            self._release()

    def _release(self) -> None:
        ctx, self._ctx = self._ctx, None
        self._release_deferred = False
        if ctx is not None:
            ctx.close()
            logger.debug("released %s context", self._engine.name)

    def close(self) -> None:
        """Brief: Close the handle.

        Notes:
          - With resolutions still in flight the engine context is released
            when the last one settles; new calls fail immediately.
          - Idempotent.
        """

        if self._closed:
            return
        self._closed = True
        if self._pending:
            logger.debug("close deferred until %d resolutions settle", self._pending)
            self._release_deferred = True
            return
        self._release()

    async def aclose(self) -> None:
        """Close the handle after every in-flight resolution has settled."""

        self._closed = True
        while self._pending:
            fut = asyncio.get_running_loop().create_future()
            self._idle_waiters.append(fut)
            await fut
        self._release()

    def __enter__(self) -> "Resolver":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "Resolver":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("finalized" if self._finalized else "configurable")
        return f"<Resolver engine={self._engine.name} {state} pending={self._pending}>"
