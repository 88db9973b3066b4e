"""Option value codec.

Brief:
  Engines take and return option values as plain strings ("yes", "no",
  "4096", ""). The facade exposes them as Python values. ``encode_value`` and
  ``decode_value`` are the single, explicit translation pair between the two.

Inputs:
  - Python option values or raw engine strings.

Outputs:
  - Engine strings or Python option values.
"""

from __future__ import annotations

import re
from typing import Optional, Union

from .errors import ContractError

OptionValue = Union[None, bool, int, str]

# Engine numeric options are at most 15 digits wide; longer digit runs stay
# text so they are never silently turned into huge integers.
_NUMBER_RE = re.compile(r"^[0-9]{1,15}$")


def option_key(key: str) -> str:
    """Brief: Normalize an option key to its colon-terminated wire form.

    Inputs:
      - key: Option name such as 'edns-buffer-size' or 'edns-buffer-size:'.

    Outputs:
      - str: Key with exactly one trailing colon. The empty key is returned
        unchanged so the engine reports it as unknown.

    Example:
      >>> option_key("do-ip6")
      'do-ip6:'
      >>> option_key("do-ip6:")
      'do-ip6:'
    """

    if not isinstance(key, str):
        raise ContractError(f"option key must be a string, got {type(key).__name__}")
    if not key or key.endswith(":"):
        return key
    return key + ":"


def encode_value(value: OptionValue) -> str:
    """Brief: Encode a Python option value into the engine's string form.

    Inputs:
      - value: None, bool, int or str.

    Outputs:
      - str: '' for None, 'yes'/'no' for booleans, base-10 digits for ints and
        strings unchanged.

    Raises:
      - ContractError for any other type (floats, bytes, containers, ...).
    """

    if value is None:
        return ""
    # bool first: it is a subclass of int.
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, str):
        return value
    raise ContractError(
        f"option value must be None, bool, int or str, got {type(value).__name__}"
    )


def decode_value(raw: Optional[str]) -> OptionValue:
    """Brief: Decode an engine option string into a Python value.

    Inputs:
      - raw: String returned by the engine, or None when the option is unset.

    Outputs:
      - None for None/'', bool for 'yes'/'no', int for 1-15 digit strings, and
        the raw string otherwise.

    Example:
      >>> decode_value("4096"), decode_value("yes"), decode_value("")
      (4096, True, None)
    """

    if raw is None or raw == "":
        return None
    if raw == "yes":
        return True
    if raw == "no":
        return False
    if _NUMBER_RE.fullmatch(raw):
        return int(raw, 10)
    return raw
