"""Tests for API envelope decoding."""
from __future__ import annotations

import pytest

from conftest import customer_wire
from retailsync.models.entities import CUSTOMER_CODEC
from retailsync.models.enums import DataShape
from retailsync.models.envelope import (
    classify_data,
    decode_list_envelope,
    decode_record_envelope,
)


class TestClassifyData:

    @pytest.mark.parametrize(
        "value, shape",
        [
            ({}, DataShape.OBJECT),
            ([], DataShape.LIST),
            (None, DataShape.NULL),
            ("oops", DataShape.INVALID),
            (3, DataShape.INVALID),
        ],
    )
    def test_shapes(self, value: object, shape: DataShape):
        assert classify_data(value) is shape


class TestRecordEnvelope:
    """Tests for single-record responses."""

    def test_empty_list_means_no_data(self):
        """A list where an object was expected decodes to no record."""
        envelope = decode_record_envelope({"status": 1, "data": []}, CUSTOMER_CODEC)
        assert envelope.is_success
        assert envelope.shape is DataShape.LIST
        assert envelope.data is None

    def test_empty_object_is_record_with_defaults(self):
        envelope = decode_record_envelope({"status": 1, "data": {}}, CUSTOMER_CODEC)
        assert envelope.data is not None
        assert envelope.data.customer_id == -1
        assert envelope.data.flag == 1

    def test_missing_status_and_message(self):
        """status defaults to 2 (failure) and message to empty."""
        envelope = decode_record_envelope({"data": customer_wire(1)}, CUSTOMER_CODEC)
        assert envelope.status == 2
        assert envelope.message == ""
        assert not envelope.is_success

    def test_status_as_string(self):
        envelope = decode_record_envelope({"status": "1", "message": "ok"}, CUSTOMER_CODEC)
        assert envelope.is_success
        assert envelope.data is None

    @pytest.mark.parametrize("payload", [None, [], "error", 42])
    def test_non_object_payload(self, payload: object):
        envelope = decode_record_envelope(payload, CUSTOMER_CODEC)
        assert envelope.status == 2
        assert envelope.data is None

    def test_merge_onto_existing(self):
        existing = CUSTOMER_CODEC.from_wire(customer_wire(5))
        envelope = decode_record_envelope(
            {"status": 1, "data": {"id": 5, "name": "Partial"}}, CUSTOMER_CODEC, existing=existing,
        )
        assert envelope.data is not None
        assert envelope.data.name == "Partial"
        assert envelope.data.phone == existing.phone


class TestListEnvelope:
    """Tests for page responses."""

    def test_page_decodes_records_and_checkpoint(self):
        payload = {
            "status": 1,
            "message": "",
            "data": [customer_wire(1), customer_wire(2)],
            "updated_date": "2024-05-01 10:00:00",
        }
        envelope = decode_list_envelope(payload, CUSTOMER_CODEC)
        assert [c.customer_id for c in envelope.data] == [1, 2]
        assert envelope.updated_date == "2024-05-01 10:00:00"

    def test_non_object_items_are_skipped(self):
        payload = {"status": 1, "data": [customer_wire(1), None, "x", 3, customer_wire(2)]}
        envelope = decode_list_envelope(payload, CUSTOMER_CODEC)
        assert [c.customer_id for c in envelope.data] == [1, 2]

    @pytest.mark.parametrize("data", [None, {"id": 1}, "nothing"])
    def test_non_list_data_is_empty_page(self, data: object):
        envelope = decode_list_envelope({"status": 1, "data": data}, CUSTOMER_CODEC)
        assert envelope.data == []

    def test_missing_updated_date(self):
        envelope = decode_list_envelope({"status": 1, "data": []}, CUSTOMER_CODEC)
        assert envelope.updated_date == ""
