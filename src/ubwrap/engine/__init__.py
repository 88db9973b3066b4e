"""Resolution engines.

Brief: Defines the Engine/EngineContext boundary and the bundled engines.

Inputs:
  - None

Outputs:
  - None
"""

from __future__ import annotations

from .base import Engine, EngineContext, EngineResponse, engine_aliases
from .forwarder import ForwardingContext, ForwardingEngine
from .libunbound import LibunboundContext, LibunboundEngine
from .registry import DEFAULT_ENGINE, discover_engines, get_engine_class, load_engine

__all__ = [
    "DEFAULT_ENGINE",
    "Engine",
    "EngineContext",
    "EngineResponse",
    "ForwardingContext",
    "ForwardingEngine",
    "LibunboundContext",
    "LibunboundEngine",
    "discover_engines",
    "engine_aliases",
    "get_engine_class",
    "load_engine",
]
