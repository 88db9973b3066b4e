from __future__ import annotations

import difflib
import functools
import importlib
import inspect
import pkgutil
import re
from typing import Any, Dict, Iterable, Optional, Type

from .base import Engine

_CAMEL_1 = re.compile(r"(.)([A-Z][a-z]+)")
_CAMEL_2 = re.compile(r"([a-z0-9])([A-Z])")

DEFAULT_ENGINE = "forwarder"


def _camel_to_snake(name: str) -> str:
    s1 = _CAMEL_1.sub(r"\1_\2", name)
    s2 = _CAMEL_2.sub(r"\1_\2", s1)
    return s2.lower()


def _default_alias_for(cls: Type[Engine]) -> str:
    name = cls.__name__
    if name.endswith("Engine"):
        name = name[: -len("Engine")]
    return _camel_to_snake(name)


def _normalize(alias: str) -> str:
    return alias.strip().lower().replace("-", "_")


def _iter_engine_modules(package_name: str = "ubwrap.engine") -> Iterable[str]:
    pkg = importlib.import_module(package_name)
    for modinfo in pkgutil.walk_packages(pkg.__path__, pkg.__name__ + "."):
        yield modinfo.name


@functools.lru_cache(maxsize=4)
def discover_engines(package_name: str = "ubwrap.engine") -> Dict[str, Type[Engine]]:
    """Brief: Discover Engine subclasses and register them by alias.

    Inputs:
      - package_name: Package path to scan.

    Outputs:
      - Dict[str, Type[Engine]] mapping normalized aliases to classes.
    """

    registry: Dict[str, Type[Engine]] = {}

    for modname in _iter_engine_modules(package_name):
        module = importlib.import_module(modname)

        for _, obj in inspect.getmembers(module, inspect.isclass):
            if not issubclass(obj, Engine) or obj is Engine:
                continue
            if obj.__module__ != module.__name__:
                continue

            claimed = set(_normalize(a) for a in (getattr(obj, "aliases", ()) or ()))
            claimed.add(_normalize(_default_alias_for(obj)))

            for alias in claimed:
                if alias in registry and registry[alias] is not obj:
                    other = registry[alias]
                    raise ValueError(
                        f"Duplicate engine alias '{alias}' claimed by {obj.__module__}.{obj.__name__} "
                        f"and {other.__module__}.{other.__name__}"
                    )
                registry[alias] = obj

    return registry


def get_engine_class(identifier: str) -> Type[Engine]:
    """Brief: Resolve identifier to an Engine class.

    Inputs:
      - identifier: Dotted import path or alias (e.g. 'forwarder',
        'libunbound').

    Outputs:
      - Engine subclass.
    """

    ident = str(identifier).strip()
    if "." in ident:
        modname, _, classname = ident.rpartition(".")
        if not modname or not classname:
            raise ValueError(f"Invalid engine path '{identifier}'")
        module = importlib.import_module(modname)
        cls = getattr(module, classname)
        if not (inspect.isclass(cls) and issubclass(cls, Engine)):
            raise TypeError(f"{identifier} is not an Engine subclass")
        return cls

    reg = discover_engines()
    key = _normalize(ident)
    try:
        return reg[key]
    except KeyError:
        suggestions = difflib.get_close_matches(key, list(reg.keys()), n=3)
        raise KeyError(
            f"Unknown engine alias '{identifier}'. "
            f"Known aliases: {', '.join(sorted(reg.keys()))}. "
            f"Suggestions: {suggestions}"
        )


def load_engine(identifier: Optional[str] = None, **kwargs: Any) -> Engine:
    """Brief: Instantiate an engine by alias or dotted path.

    Inputs:
      - identifier: Alias or dotted path; defaults to DEFAULT_ENGINE.
      - **kwargs: Passed to the engine constructor.

    Outputs:
      - Engine instance.
    """

    cls = get_engine_class(identifier or DEFAULT_ENGINE)
    return cls(**kwargs)
