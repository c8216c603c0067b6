"""
Shared Enumerations for RetailSync Models.

StrEnum values compare equal to their string equivalents, IntEnum values
to the integer codes the remote API sends.
"""

from __future__ import annotations
from enum import IntEnum, StrEnum


class UserType(IntEnum):
    """Account types issued by the remote API (``user_type`` query param)."""

    ADMIN = 1
    STOREKEEPER = 2
    SALESMAN = 3
    SUPPLIER = 4
    BILLER = 5
    CHECKER = 6
    DRIVER = 7


class FailureKind(StrEnum):
    """Classification of every failure a public operation can report."""

    DATABASE = "DATABASE"
    NETWORK = "NETWORK"
    SERVER = "SERVER"
    UNKNOWN = "UNKNOWN"
    VALIDATION = "VALIDATION"


class DataShape(StrEnum):
    """Shape of the ``data`` member of an API envelope.

    The server does not keep ``data`` consistent per endpoint, so decoders
    classify it first and apply one rule per shape.
    """

    OBJECT = "OBJECT"
    LIST = "LIST"
    NULL = "NULL"
    INVALID = "INVALID"


class FieldKind(StrEnum):
    """Coercion applied to one codec field."""

    INT = "INT"
    OPTIONAL_INT = "OPTIONAL_INT"
    FLOAT = "FLOAT"
    TEXT = "TEXT"
    OPTIONAL_TEXT = "OPTIONAL_TEXT"
