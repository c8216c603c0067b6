"""
Entity Codec.

Declarative, bidirectional mapping between an entity record and its two
external forms: the JSON object exchanged with the remote API ("wire") and
the SQLite row.  Each field is declared once as a :class:`FieldMap`, so the
wire name, the column name and the coercion rule live side by side instead
of in four hand-written conversion functions.

Decoding is total: a missing key, ``null``, or a value of the wrong type
falls back to the field default and never raises.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Generic, NamedTuple, Optional, TypeVar

from pydantic import BaseModel

from retailsync.models.enums import FieldKind
from retailsync.utils.string_helpers import JsonObject, JsonValue

R = TypeVar("R", bound=BaseModel)

__all__ = ["EntityCodec", "FieldMap", "coerce", "coerce_float", "coerce_int", "coerce_text"]

RowValue = Optional[int | float | str | bytes]


class FieldMap(NamedTuple):
    """Declaration of one record attribute.

    ``wire`` / ``column`` are ``None`` when the attribute has no
    representation on that side.  ``read_only`` fields are decoded but never
    written back: the local surrogate key and joined display names.
    """

    attr: str
    wire: Optional[str]
    column: Optional[str]
    kind: FieldKind
    default: JsonValue = None
    read_only: bool = False


# ---------------------------------------------------------------------------
# Coercion primitives
# ---------------------------------------------------------------------------

def coerce_int(value: object, default: Optional[int]) -> Optional[int]:
    """Best-effort integer conversion.

    Accepts ints, integral floats and numeric strings (``"7"``, ``"7.0"``).
    Anything else, including ``bool``, yields *default*.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return default
        return int(number) if math.isfinite(number) else default
    return default


def coerce_float(value: object, default: float) -> float:
    """Prices and quantities: numbers and numeric strings, finite only."""
    if isinstance(value, bool):
        return default
    if not isinstance(value, (int, float, str)):
        return default
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return default
    return number if math.isfinite(number) else default


def coerce_text(value: object, default: Optional[str]) -> Optional[str]:
    """Strings pass through; numbers are stringified; anything else is *default*."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return str(value)
    return default


def coerce(kind: FieldKind, value: object, default: JsonValue = None) -> JsonValue:
    if kind is FieldKind.INT:
        return coerce_int(value, default if isinstance(default, int) else -1)
    if kind is FieldKind.OPTIONAL_INT:
        return coerce_int(value, None)
    if kind is FieldKind.FLOAT:
        return coerce_float(value, float(default) if isinstance(default, (int, float)) else 0.0)
    if kind is FieldKind.TEXT:
        return coerce_text(value, default if isinstance(default, str) else "")
    # OPTIONAL_TEXT: the store keeps "" where the record has None.
    text = coerce_text(value, None)
    return text if text else None


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

class EntityCodec(Generic[R]):
    """Field-by-field translator for one entity type.

    Parameters
    ----------
    model:
        The pydantic record class produced by the decoders.
    id_attr:
        Name of the server identifier attribute (``customer_id``, ...).
    fields:
        Every mapped attribute, including the identifier.
    """

    def __init__(self, model: type[R], id_attr: str, fields: Iterable[FieldMap]) -> None:
        self.model: type[R] = model
        self.fields: tuple[FieldMap, ...] = tuple(fields)
        by_attr = {f.attr: f for f in self.fields}
        if id_attr not in by_attr:
            raise ValueError(f"{model.__name__} codec does not map id attribute {id_attr!r}")
        self.id_field: FieldMap = by_attr[id_attr]
        self._wire_fields = tuple(f for f in self.fields if f.wire is not None)
        self._row_fields = tuple(f for f in self.fields if f.column is not None)

    # -- Identity -------------------------------------------------------------

    @property
    def id_attr(self) -> str:
        return self.id_field.attr

    @property
    def id_column(self) -> str:
        assert self.id_field.column is not None
        return self.id_field.column

    def entity_id(self, record: R) -> int:
        value = getattr(record, self.id_attr)
        return value if isinstance(value, int) else -1

    @property
    def writable_columns(self) -> tuple[str, ...]:
        """Columns written by inserts and updates, in declaration order."""
        return tuple(
            f.column for f in self._row_fields if not f.read_only and f.column is not None
        )

    # -- Decoding -------------------------------------------------------------

    def from_wire(self, payload: Mapping[str, object]) -> R:
        """Decode a complete wire object; missing keys take field defaults."""
        values = {
            f.attr: coerce(f.kind, payload.get(f.wire), f.default)  # type: ignore[arg-type]
            for f in self._wire_fields
        }
        return self.model.model_validate(values)

    def from_row(self, row: Mapping[str, RowValue]) -> R:
        """Decode a store row (``sqlite3.Row`` converted to a dict)."""
        values = {
            f.attr: coerce(f.kind, row.get(f.column), f.default)  # type: ignore[arg-type]
            for f in self._row_fields
        }
        return self.model.model_validate(values)

    def partial_from_wire(self, payload: Mapping[str, object]) -> dict[str, JsonValue]:
        """Decode only the fields *present and non-null* in *payload*.

        A present empty string is kept: the server explicitly cleared it.
        """
        return {
            f.attr: coerce(f.kind, payload[f.wire], f.default)  # type: ignore[index]
            for f in self._wire_fields
            if f.wire in payload and payload[f.wire] is not None
        }

    def merge(self, existing: Optional[R], payload: Mapping[str, object]) -> R:
        """Overlay a possibly partial wire object onto *existing*.

        Fields absent from *payload* or sent as ``null`` keep the value from
        *existing*; with no existing record the field default is used.
        """
        if existing is None:
            return self.from_wire(payload)
        return existing.model_copy(update=self.partial_from_wire(payload))

    # -- Encoding -------------------------------------------------------------

    def to_wire(self, record: R) -> JsonObject:
        return {
            f.wire: getattr(record, f.attr)
            for f in self._wire_fields
            if not f.read_only and f.wire is not None
        }

    def to_row(self, record: R) -> dict[str, RowValue]:
        row: dict[str, RowValue] = {}
        for f in self._row_fields:
            if f.read_only or f.column is None:
                continue
            value = getattr(record, f.attr)
            if f.kind is FieldKind.OPTIONAL_TEXT and value is None:
                value = ""
            row[f.column] = value
        return row
