"""
API Envelope Decoding.

Every response from the remote API is wrapped as
``{"status": 1, "message": "...", "data": ...}``.  The server is not
consistent about the shape of ``data`` (an object, a list, ``null`` or
something else entirely can come back from the same endpoint), so decoding
first classifies it into a :class:`DataShape` and then applies exactly one
rule per shape:

=========  ===================  ==========================================
shape      record envelope      list envelope
=========  ===================  ==========================================
OBJECT     decoded record       ``[]``
LIST       ``None``             decoded records, non-object items skipped
NULL       ``None``             ``[]``
INVALID    ``None``             ``[]``
=========  ===================  ==========================================

Decoding never raises.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from retailsync.models.codec import EntityCodec, coerce_int, coerce_text
from retailsync.models.enums import DataShape

R = TypeVar("R")

__all__ = [
    "ApiEnvelope",
    "ApiListEnvelope",
    "STATUS_SUCCESS",
    "classify_data",
    "decode_list_envelope",
    "decode_record_envelope",
]

STATUS_SUCCESS: int = 1
_STATUS_DEFAULT: int = 2


class ApiEnvelope(BaseModel, Generic[R]):
    """Decoded single-record response."""

    status: int = _STATUS_DEFAULT
    message: str = ""
    shape: DataShape = DataShape.NULL
    data: Optional[R] = None

    @property
    def is_success(self) -> bool:
        return self.status == STATUS_SUCCESS


class ApiListEnvelope(BaseModel, Generic[R]):
    """Decoded page of records.

    ``updated_date`` is the server checkpoint to send as ``update_date`` on
    the next incremental sync.
    """

    status: int = _STATUS_DEFAULT
    message: str = ""
    shape: DataShape = DataShape.NULL
    data: list[R] = Field(default_factory=list)
    updated_date: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == STATUS_SUCCESS


def classify_data(value: object) -> DataShape:
    if value is None:
        return DataShape.NULL
    if isinstance(value, Mapping):
        return DataShape.OBJECT
    if isinstance(value, list):
        return DataShape.LIST
    return DataShape.INVALID


def _header(payload: object, member: str = "data") -> tuple[int, str, object]:
    if not isinstance(payload, Mapping):
        return _STATUS_DEFAULT, "", None
    status = coerce_int(payload.get("status"), _STATUS_DEFAULT)
    message = coerce_text(payload.get("message"), "")
    return status, message or "", payload.get(member)  # type: ignore[return-value]


def decode_record_envelope(
    payload: object,
    codec: EntityCodec[R],
    existing: Optional[R] = None,
    member: str = "data",
) -> ApiEnvelope[R]:
    """Decode a single-record response.

    With *existing*, an object ``data`` is merged field by field onto it,
    so keys the server left out keep their current local value.  *member*
    names the key holding the record; product writes answer under
    ``product`` instead of ``data``.
    """
    status, message, raw = _header(payload, member)
    shape = classify_data(raw)
    record: Optional[R] = None
    if shape is DataShape.OBJECT:
        record = codec.merge(existing, raw)  # type: ignore[arg-type]
    return ApiEnvelope(status=status, message=message, shape=shape, data=record)


def decode_list_envelope(payload: object, codec: EntityCodec[R]) -> ApiListEnvelope[R]:
    """Decode a page (or a single-record retry) response."""
    status, message, raw = _header(payload)
    shape = classify_data(raw)
    records: list[R] = []
    if shape is DataShape.LIST:
        records = [codec.from_wire(item) for item in raw if isinstance(item, Mapping)]  # type: ignore[union-attr]
    updated_date = ""
    if isinstance(payload, Mapping):
        updated_date = coerce_text(payload.get("updated_date"), "") or ""
    return ApiListEnvelope(
        status=status,
        message=message,
        shape=shape,
        data=records,
        updated_date=updated_date,
    )
