"""Error taxonomy and engine status classification for ubwrap.

Brief:
  Engines report failures as integer status codes using libunbound's
  numbering. This module turns a (status, operation) pair into one of the
  facade's exception classes, and provides the explicit ``OptionLookup``
  result used for capability probing so that no caller ever needs to inspect
  exception message text.

Inputs:
  - Engine status codes and operation names.

Outputs:
  - Exception instances and ``OptionLookup`` records.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class ErrorCode(enum.IntEnum):
    """Brief: Engine status codes (libunbound numbering)."""

    NOERROR = 0
    SOCKET = -1
    NOMEM = -2
    SYNTAX = -3
    SERVFAIL = -4
    FORKFAIL = -5
    AFTERFINAL = -6
    INITFAIL = -7
    PIPE = -8
    READFILE = -9
    NOID = -10


_MESSAGES = {
    ErrorCode.NOERROR: "no error",
    ErrorCode.SOCKET: "socket io error",
    ErrorCode.NOMEM: "out of memory",
    ErrorCode.SYNTAX: "syntax error",
    ErrorCode.SERVFAIL: "server failure",
    ErrorCode.FORKFAIL: "could not fork",
    ErrorCode.AFTERFINAL: "setting change after finalize",
    ErrorCode.INITFAIL: "initialization failure",
    ErrorCode.PIPE: "error in pipe communication with async bg worker",
    ErrorCode.READFILE: "error reading from file",
    ErrorCode.NOID: "error async_id does not exist",
}


def strerror(status: int) -> str:
    """Brief: Return the standard message for an engine status code.

    Inputs:
      - status: Integer status code.

    Outputs:
      - str: Human-readable message; "unknown error" for unknown codes.
    """

    try:
        return _MESSAGES[ErrorCode(int(status))]
    except ValueError:
        return "unknown error"


class ContractError(TypeError, ValueError):
    """Caller passed a wrong type or an out-of-range value.

    Raised synchronously, before the engine is touched. It subclasses both
    TypeError and ValueError so callers may catch whichever is natural.
    """


class IntegrationError(RuntimeError):
    """The engine broke its contract with the facade (e.g. wrong result arity)."""


class EngineUnavailable(ImportError):
    """The selected engine backend is not installed."""


class EngineError(Exception):
    """Brief: Base class for failures originating inside the engine.

    Inputs:
      - message: Full message, already prefixed with the engine name.
      - status: Engine status code.
      - operation: Name of the engine operation that failed.

    Outputs:
      - Exception instance carrying ``status`` and ``operation``.
    """

    def __init__(self, message: str, *, status: int, operation: str) -> None:
        super().__init__(message)
        self.status = int(status)
        self.operation = operation

    @property
    def code(self) -> Optional[ErrorCode]:
        """Return the status as an ErrorCode, or None for unknown codes."""

        try:
            return ErrorCode(self.status)
        except ValueError:
            return None


class EngineOptionError(EngineError):
    """The engine does not recognize an option key, or rejected its value."""


class EngineOperationError(EngineError):
    """The engine rejected a configuration, zone or data operation."""


class ResolutionError(EngineError):
    """An asynchronous resolution failed inside the engine or network layer."""


# Operations whose SYNTAX status means "option not recognized / malformed".
_OPTION_OPERATIONS = frozenset({"get_option", "set_option"})


def format_message(engine_name: str, status: int, text: Optional[str] = None) -> str:
    """Brief: Build the stable ``"<engine>: <message> (<status>)"`` form."""

    msg = text or strerror(status)
    if len(msg) > 256:
        msg = "unknown error"
    return f"{engine_name}: {msg} ({int(status)})"


def classify_status(
    status: int,
    operation: str,
    *,
    engine_name: str = "engine",
    text: Optional[str] = None,
) -> EngineError:
    """Brief: Map a non-zero engine status to the matching exception instance.

    Inputs:
      - status: Non-zero engine status code.
      - operation: Engine operation name (e.g. 'get_option', 'add_zone',
        'resolve').
      - engine_name: Prefix for the message.
      - text: Optional engine-provided message overriding ``strerror``.

    Outputs:
      - EngineError subclass instance (not raised).

    Example:
      >>> err = classify_status(ErrorCode.SYNTAX, "get_option")
      >>> isinstance(err, EngineOptionError)
      True
    """

    message = format_message(engine_name, status, text)
    if operation == "resolve":
        cls: type[EngineError] = ResolutionError
    elif operation in _OPTION_OPERATIONS and int(status) == ErrorCode.SYNTAX:
        cls = EngineOptionError
    else:
        cls = EngineOperationError
    return cls(message, status=status, operation=operation)


@dataclass(frozen=True)
class OptionLookup:
    """Brief: Outcome of the option-get primitive.

    Inputs/fields:
      - key: Colon-terminated option key that was looked up.
      - found: False when the engine does not know the key.
      - raw: Raw engine string (None when unset or not found).

    Outputs:
      - Instances returned by Resolver.lookup_option().
    """

    key: str
    found: bool
    raw: Optional[str] = None

    @classmethod
    def unknown(cls, key: str) -> "OptionLookup":
        return cls(key=key, found=False, raw=None)


def is_unknown_option(status: int, operation: str = "get_option") -> bool:
    """Brief: True when a status reported by get_option means "no such key"."""

    return operation == "get_option" and int(status) == ErrorCode.SYNTAX
