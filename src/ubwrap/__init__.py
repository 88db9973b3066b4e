"""ubwrap: asyncio facade over a validating DNS resolver engine."""

__version__ = "0.3.0"

from .codec import OptionValue, decode_value, encode_value, option_key  # noqa: E402
from .errors import (  # noqa: E402
    ContractError,
    EngineError,
    EngineOperationError,
    EngineOptionError,
    EngineUnavailable,
    ErrorCode,
    IntegrationError,
    OptionLookup,
    ResolutionError,
)
from .names import fqdn, is_fqdn  # noqa: E402
from .resolver import Resolver, engine_version  # noqa: E402
from .result import ResolutionResult  # noqa: E402

__all__ = [
    "ContractError",
    "EngineError",
    "EngineOperationError",
    "EngineOptionError",
    "EngineUnavailable",
    "ErrorCode",
    "IntegrationError",
    "OptionLookup",
    "OptionValue",
    "ResolutionError",
    "ResolutionResult",
    "Resolver",
    "__version__",
    "decode_value",
    "encode_value",
    "engine_version",
    "fqdn",
    "is_fqdn",
    "option_key",
]
