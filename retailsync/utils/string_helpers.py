"""
String Helpers.

Shared JSON value type and the LIKE-pattern escaping used by every
repository search.
"""

from __future__ import annotations

import re
from typing import Union

__all__ = [
    "JsonObject",
    "JsonValue",
    "escape_like",
    "like_pattern",
]

# ---------------------------------------------------------------------------
# Recursive JSON value type (PEP 484, no ``Any``)
# ---------------------------------------------------------------------------

JsonValue = Union[
    str,
    int,
    float,
    bool,
    None,
    dict[str, "JsonValue"],
    list["JsonValue"],
]

JsonObject = dict[str, JsonValue]

LIKE_ESCAPE: str = "\\"

# SQL LIKE wildcards plus the escape character itself.
_LIKE_SPECIAL_RE = re.compile(r"([\\%_])")


def escape_like(value: str) -> str:
    """Escape ``%``, ``_`` and ``\\`` so *value* matches literally in a LIKE.

    Must be paired with ``ESCAPE '\\'`` in the SQL clause.
    """
    return _LIKE_SPECIAL_RE.sub(r"\\\1", value)


def like_pattern(search_key: str) -> str:
    """Return a ``%...%`` substring pattern for *search_key*."""
    return f"%{escape_like(search_key)}%"
