from __future__ import annotations

from typing import Any, Optional, Tuple

from ..errors import strerror

# (status, 14-field tuple or None)
EngineResponse = Tuple[int, Optional[Tuple[Any, ...]]]


def engine_aliases(*aliases: str):
    """Brief: Decorator to set aliases on an Engine class for discovery.

    Inputs:
      - *aliases: Variable number of alias strings.

    Outputs:
      - Callable that applies the aliases to an Engine subclass and returns it.

    Example:
      >>> @engine_aliases('fwd', 'forwarder')
      ... class MyEngine(Engine):
      ...     pass
      >>> MyEngine.aliases
      ('fwd', 'forwarder')
    """

    def _wrap(cls: type) -> type:
        cls.aliases = tuple(aliases)
        return cls

    return _wrap


class EngineContext:
    """Base class for one engine resolution context.

    Brief:
      A context holds all of the engine's configuration, local zones and
      trust material. Every method reports failure through an integer status
      code (0 on success, libunbound numbering otherwise); the facade turns
      non-zero codes into exceptions. Subclasses must implement all methods.

    Inputs:
      - None.

    Outputs:
      - EngineContext instance.
    """

    def set_option(self, key: str, value: str) -> int:
        """Brief: Set a colon-terminated option to a string value."""

        raise NotImplementedError

    def get_option(self, key: str) -> Tuple[int, Optional[str]]:
        """Brief: Return (status, value) for a colon-terminated option key.

        Outputs:
          - (0, value) when the option exists (value may be '' or None when
            unset); (SYNTAX, None) when the key is unknown.
        """

        raise NotImplementedError

    def set_config(self, fname: str) -> int:
        raise NotImplementedError

    def set_forward(self, addr: str) -> int:
        raise NotImplementedError

    def set_stub(self, zone: str, addr: str, prime: bool) -> int:
        raise NotImplementedError

    def set_resolv_conf(self, fname: Optional[str]) -> int:
        raise NotImplementedError

    def set_hosts(self, fname: Optional[str]) -> int:
        raise NotImplementedError

    def add_trust_anchor(self, anchor: str) -> int:
        raise NotImplementedError

    def add_trust_anchor_file(self, fname: str) -> int:
        raise NotImplementedError

    def add_trust_anchor_autr(self, fname: str) -> int:
        raise NotImplementedError

    def add_trusted_keys(self, fname: str) -> int:
        raise NotImplementedError

    def add_zone(self, name: str, zone_type: str) -> int:
        raise NotImplementedError

    def remove_zone(self, name: str) -> int:
        raise NotImplementedError

    def add_data(self, record: str) -> int:
        raise NotImplementedError

    def remove_data(self, record: str) -> int:
        raise NotImplementedError

    async def resolve(self, name: str, rrtype: int, rrclass: int) -> EngineResponse:
        """Brief: Resolve one question.

        Inputs:
          - name: Fully-qualified query name.
          - rrtype / rrclass: Unsigned 32-bit type and class numbers.

        Outputs:
          - (0, items) with a 14-field tuple on success, or (status, None).
        """

        raise NotImplementedError

    def strerror(self, status: int) -> str:
        return strerror(status)

    def close(self) -> None:
        """Brief: Release engine resources. Called once, with nothing in flight."""

        return None


class Engine:
    """Base class for resolution engines.

    Brief:
      An Engine is a factory for EngineContext objects plus a little static
      metadata. ``name`` prefixes every engine error message.

    Inputs:
      - None.

    Outputs:
      - Engine instance.
    """

    aliases: tuple[str, ...] = ()
    name: str = "engine"

    def version(self) -> str:
        raise NotImplementedError

    def create_context(self) -> EngineContext:
        raise NotImplementedError
