"""
Brief: Global pytest configuration: per-test 10s timeout and fake engine fixtures.

Inputs:
  - None

Outputs:
  - None
"""

import asyncio
import os
import signal
import sys
from typing import Any, Dict, List, Optional, Tuple

import dns.message
import dns.rrset
import pytest

# Ensure 'src' is on sys.path so 'ubwrap' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from ubwrap.engine.base import Engine, EngineContext  # noqa: E402
from ubwrap.errors import ErrorCode  # noqa: E402


def make_items(
    name: str,
    rrtype: int = 1,
    rrclass: int = 1,
    *,
    address: str = "192.0.2.1",
    ttl: int = 300,
) -> Tuple[Any, ...]:
    """
    Brief: Build a well-formed 14-field engine response for an A answer.

    Inputs:
      - name: Fully-qualified query name.
      - rrtype / rrclass: Echoed type and class.
      - address: IPv4 address placed in the answer.
      - ttl: Answer TTL.

    Outputs:
      - Tuple in ubwrap.result.RESULT_FIELDS order.
    """
    query = dns.message.make_query(name, "A")
    resp = dns.message.make_response(query)
    resp.answer.append(dns.rrset.from_text(name, ttl, "IN", "A", address))
    rdata = resp.answer[0][0].to_wire()
    return (
        name,
        rrtype,
        rrclass,
        (rdata,),
        name,
        0,
        resp.to_wire(),
        True,
        False,
        False,
        False,
        None,
        False,
        ttl,
    )


class FakeContext(EngineContext):
    """
    Brief: Scriptable EngineContext recording every call.

    Inputs:
      - engine: Owning FakeEngine.

    Outputs:
      - Context whose statuses/responses tests adjust directly.
    """

    def __init__(self, engine: "FakeEngine") -> None:
        self.engine = engine
        self.options: Dict[str, str] = {
            "logfile:": "",
            "verbosity:": "0",
            "edns-buffer-size:": "1232",
            "do-ip6:": "yes",
            "module-config:": "validator iterator",
        }
        self.calls: List[Tuple[Any, ...]] = []
        self.statuses: Dict[str, int] = {}
        self.responses: Dict[str, Tuple[int, Optional[Tuple[Any, ...]]]] = {}
        self.gate: Optional[asyncio.Event] = None
        self.in_flight = 0
        self.closed = False

    def _op(self, op: str, *args: Any) -> int:
        self.calls.append((op,) + args)
        return self.statuses.get(op, 0)

    def set_option(self, key, value):
        status = self._op("set_option", key, value)
        if status:
            return status
        if key not in self.options:
            return int(ErrorCode.SYNTAX)
        self.options[key] = value
        return 0

    def get_option(self, key):
        status = self._op("get_option", key)
        if status:
            return status, None
        if key not in self.options:
            return int(ErrorCode.SYNTAX), None
        return 0, self.options[key]

    def set_config(self, fname):
        return self._op("set_config", fname)

    def set_forward(self, addr):
        return self._op("set_forward", addr)

    def set_stub(self, zone, addr, prime):
        return self._op("set_stub", zone, addr, prime)

    def set_resolv_conf(self, fname):
        return self._op("set_resolv_conf", fname)

    def set_hosts(self, fname):
        return self._op("set_hosts", fname)

    def add_trust_anchor(self, anchor):
        return self._op("add_trust_anchor", anchor)

    def add_trust_anchor_file(self, fname):
        return self._op("add_trust_anchor_file", fname)

    def add_trust_anchor_autr(self, fname):
        return self._op("add_trust_anchor_autr", fname)

    def add_trusted_keys(self, fname):
        return self._op("add_trusted_keys", fname)

    def add_zone(self, name, zone_type):
        return self._op("add_zone", name, zone_type)

    def remove_zone(self, name):
        return self._op("remove_zone", name)

    def add_data(self, record):
        return self._op("add_data", record)

    def remove_data(self, record):
        return self._op("remove_data", record)

    async def resolve(self, name, rrtype, rrclass):
        self.calls.append(("resolve", name, rrtype, rrclass))
        assert not self.closed, "resolve on a released context"
        self.in_flight += 1
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
        if "resolve" in self.statuses:
            return self.statuses["resolve"], None
        if name in self.responses:
            return self.responses[name]
        return 0, make_items(name, rrtype, rrclass)

    def close(self):
        assert self.in_flight == 0, "context released with resolutions in flight"
        self.closed = True


class FakeEngine(Engine):
    """Brief: Engine producing FakeContext instances."""

    aliases = ()
    name = "fake"

    def __init__(self) -> None:
        self.contexts: List[FakeContext] = []

    def version(self) -> str:
        return "fake 1.0"

    def create_context(self) -> FakeContext:
        ctx = FakeContext(self)
        self.contexts.append(ctx)
        return ctx


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


# Install handler if supported on this platform
if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture
def fake_engine():
    """
    Brief: Fresh FakeEngine per test.

    Inputs:
      - None

    Outputs:
      - FakeEngine
    """
    return FakeEngine()


@pytest.fixture
def resolver(fake_engine):
    """
    Brief: Resolver bound to the fake engine, closed after the test.

    Inputs:
      - fake_engine: FakeEngine fixture

    Outputs:
      - ubwrap.Resolver
    """
    from ubwrap.resolver import Resolver

    r = Resolver(fake_engine)
    yield r
    r.close()


@pytest.fixture
def fake_ctx(resolver, fake_engine):
    """Brief: The FakeContext owned by the ``resolver`` fixture."""
    return fake_engine.contexts[-1]


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        # Fallback: no-op on platforms without SIGALRM
        yield
