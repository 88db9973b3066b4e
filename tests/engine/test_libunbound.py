"""
Brief: Tests for the libunbound engine adapter using an in-memory bindings module.

Inputs:
  - None

Outputs:
  - None
"""

import asyncio
import sys
import types

import pytest

from ubwrap.engine.libunbound import LibunboundContext, LibunboundEngine, result_items
from ubwrap.errors import EngineUnavailable, ResolutionError
from ubwrap.resolver import Resolver


class FakeData:
    def __init__(self, raw):
        self.raw = raw


class FakeResult:
    qname = "www.example."
    qtype = 1
    qclass = 1
    canonname = "www.example."
    rcode = 0
    packet = [0, 1, 2, 3]
    havedata = 1
    nxdomain = 0
    secure = 1
    bogus = 0
    why_bogus = None
    ttl = 300

    def __init__(self):
        self.data = FakeData([b"\xc0\x00\x02\x01"])


class FakeUbCtx:
    """Brief: Records every call and answers like ub_ctx."""

    def __init__(self):
        self.calls = []
        self.options = {"verbosity:": "0"}
        self.resolve_status = 0

    def debuglevel(self, level):
        self.calls.append(("debuglevel", level))

    def set_option(self, key, value):
        self.calls.append(("set_option", key, value))
        if key not in self.options:
            return -3
        self.options[key] = value
        return 0

    def get_option(self, key):
        if key not in self.options:
            return -3, None
        return 0, self.options[key]

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def call(*args):
            self.calls.append((name,) + args)
            return 0

        return call

    def resolve(self, name, rrtype, rrclass):
        self.calls.append(("resolve", name, rrtype, rrclass))
        if self.resolve_status:
            return self.resolve_status, None
        return 0, FakeResult()


def make_module():
    module = types.SimpleNamespace()
    module.contexts = []

    def ub_ctx():
        ctx = FakeUbCtx()
        module.contexts.append(ctx)
        return ctx

    module.ub_ctx = ub_ctx
    module.ub_version = lambda: "1.19.0"
    module.ub_strerror = lambda code: {-4: "server failure"}.get(code, "")
    return module


def test_missing_bindings_raise_engine_unavailable(monkeypatch):
    monkeypatch.setitem(sys.modules, "unbound", None)
    with pytest.raises(EngineUnavailable):
        LibunboundEngine()


def test_result_items_conversion():
    items = result_items(FakeResult())
    assert len(items) == 14
    assert items[0] == "www.example."
    assert items[3] == (b"\xc0\x00\x02\x01",)
    assert items[6] == b"\x00\x01\x02\x03"
    assert items[7] is True and items[9] is True
    assert items[12] is False
    assert items[13] == 300


def test_context_maps_calls_to_bindings():
    module = make_module()
    ctx = LibunboundContext(module)
    ub = module.contexts[0]
    assert ctx.set_option("verbosity:", "2") == 0
    assert ctx.get_option("verbosity:") == (0, "2")
    assert ctx.get_option("nope:") == (-3, None)
    ctx.set_forward("192.0.2.1")
    ctx.set_stub("lab.", "192.0.2.2", True)
    ctx.add_trust_anchor_autr("/var/lib/unbound/root.key")
    ctx.add_zone("example.", "static")
    ctx.add_data("www.example. A 192.0.2.1")
    names = [c[0] for c in ub.calls]
    assert names[0] == "debuglevel"
    assert ("set_fwd", "192.0.2.1") in ub.calls
    assert ("set_stub", "lab.", "192.0.2.2", 1) in ub.calls
    assert ("add_ta_autr", "/var/lib/unbound/root.key") in ub.calls
    assert ("zone_add", "example.", "static") in ub.calls
    assert ("data_add", "www.example. A 192.0.2.1") in ub.calls
    assert ctx.strerror(-4) == "server failure"
    assert ctx.strerror(-99) == "unknown error"


def test_resolve_runs_through_facade():
    module = make_module()

    async def run():
        async with Resolver(LibunboundEngine(module)) as r:
            assert r.version() == "1.19.0"
            return await r.resolve("www.example")

    res = asyncio.run(run())
    assert res.qname == "www.example."
    assert res.secure is True
    assert module.contexts[0].calls[-1] == ("resolve", "www.example.", 1, 1)


def test_resolve_failure_uses_binding_message():
    module = make_module()
    r = Resolver(LibunboundEngine(module))
    module.contexts[0].resolve_status = -4
    with pytest.raises(ResolutionError) as excinfo:
        asyncio.run(r.resolve("www.example"))
    assert str(excinfo.value) == "libunbound: server failure (-4)"
    r.close()
