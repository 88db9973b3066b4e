"""Domain name canonicalization."""

from __future__ import annotations

from typing import Any


def _trailing_backslashes(name: str, end: int) -> int:
    """Count consecutive backslashes immediately before index ``end``."""

    count = 0
    i = end - 1
    while i >= 0 and name[i] == "\\":
        count += 1
        i -= 1
    return count


def is_fqdn(name: str) -> bool:
    """Brief: True when ``name`` ends in an unescaped dot.

    Inputs:
      - name: Domain name in presentation form.

    Outputs:
      - bool: The last character is a dot preceded by an even number of
        backslashes (zero included).
    """

    if not name or name[-1] != ".":
        return False
    return _trailing_backslashes(name, len(name) - 1) % 2 == 0


def fqdn(name: Any) -> Any:
    """Brief: Return the fully-qualified form of a domain name.

    Inputs:
      - name: Domain name. Non-string values are returned unchanged.

    Outputs:
      - str: '.' for the empty name, ``name`` if it already ends in an
        unescaped dot, otherwise ``name + '.'``.

    Example:
      >>> fqdn("example.com")
      'example.com.'
      >>> fqdn("example.com.")
      'example.com.'
      >>> fqdn("odd\\\\.")
      'odd\\\\..'
    """

    if not isinstance(name, str):
        return name
    if not name:
        return "."
    if is_fqdn(name):
        return name
    return name + "."
