"""Property name -> accessor name derivation.

    camel_case("x.y")         -> "xY"
    camel_case("user-name")   -> "userName"
    setter_name("x.y")        -> "setXY"
"""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[.\-\s]+")


def camel_case(name: str) -> str:
    """Join separator-delimited parts, upper-casing the first letter of each after the first."""
    parts = [part for part in _SEPARATORS.split(name) if part]
    if not parts:
        return name
    head, *tail = parts
    return head + "".join(part[:1].upper() + part[1:] for part in tail)


def setter_name(name: str) -> str:
    accessor = camel_case(name)
    return "set" + accessor[:1].upper() + accessor[1:]
