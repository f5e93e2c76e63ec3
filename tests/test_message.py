"""
Tests for protocol messages.

These tests cover:
- TransmissionHeader serialization and parsing
- BulkPayloadMessage decoding
- Trigger/pending agreement
- Attempt IDs
"""

import json

import pytest

from smsimg.core.message import (
    BulkPayloadMessage,
    MessageType,
    NarrowChannelTrigger,
    PendingPayload,
    TransmissionHeader,
    new_transmission_id,
    to_base36,
)


class TestTransmissionHeader:
    """Tests for TransmissionHeader."""

    def test_to_json_compact(self):
        """Header serializes as flat compact JSON in field order."""
        header = TransmissionHeader(id="abc", total=3, checksum="ff", enc=0)
        assert header.to_json() == '{"id":"abc","total":3,"checksum":"ff","enc":0,"index":0}'

    def test_single_closing_brace(self):
        """Serialized header has exactly one closing brace."""
        header = TransmissionHeader(id="k9x", total=12, checksum="a" * 64, enc=1, index=2)
        assert header.to_json().count("}") == 1

    def test_from_json(self):
        """Parse a header."""
        header = TransmissionHeader.from_json(
            '{"id":"abc","total":3,"checksum":"ff","enc":1,"index":2}'
        )
        assert header.id == "abc"
        assert header.total == 3
        assert header.enc == 1
        assert header.index == 2

    def test_from_json_invalid(self):
        """Invalid JSON raises ValueError."""
        with pytest.raises(ValueError):
            TransmissionHeader.from_json("{not json")

    def test_from_json_not_object(self):
        """JSON that is not an object raises ValueError."""
        with pytest.raises(ValueError):
            TransmissionHeader.from_json("[1, 2]")

    def test_from_json_missing_field(self):
        """Missing fields raise ValueError."""
        with pytest.raises(ValueError):
            TransmissionHeader.from_json('{"id":"abc","total":3}')

    def test_enc_range(self):
        """enc must be 0 or 1."""
        with pytest.raises(ValueError):
            TransmissionHeader.from_json('{"id":"a","total":1,"checksum":"c","enc":2}')

    def test_with_index(self):
        """with_index copies without mutating."""
        header = TransmissionHeader(id="a", total=1, checksum="c", enc=0)
        second = header.with_index(1)
        assert second.index == 1
        assert header.index == 0

    def test_to_trigger(self):
        """Trigger keeps total and checksum."""
        header = TransmissionHeader(id="a", total=7, checksum="c", enc=1, index=2)
        assert header.to_trigger() == NarrowChannelTrigger(total=7, checksum="c")


class TestBulkPayloadMessage:
    """Tests for BulkPayloadMessage."""

    def test_to_dict(self):
        """Wire shape of a NEW_IMAGE message."""
        message = BulkPayloadMessage(payload="QUJD", checksum="ff", enc=0, total=1)
        assert message.to_dict() == {
            "type": "NEW_IMAGE",
            "payload": "QUJD",
            "checksum": "ff",
            "enc": 0,
            "total": 1,
        }
        assert json.loads(message.to_json()) == message.to_dict()

    def test_from_dict(self):
        """Decode a NEW_IMAGE message."""
        message = BulkPayloadMessage.from_dict(
            {"type": "NEW_IMAGE", "payload": "QUJD", "checksum": "ff", "enc": 1, "total": 2}
        )
        assert message.type == MessageType.NEW_IMAGE
        assert message.enc == 1
        assert message.total == 2

    def test_from_dict_other_type(self):
        """Other message types are not payloads."""
        assert BulkPayloadMessage.from_dict({"type": "SMS", "payload": "x"}) is None
        assert BulkPayloadMessage.from_dict({"payload": "x"}) is None

    def test_from_dict_empty_payload(self):
        """NEW_IMAGE without a payload is ignored."""
        assert BulkPayloadMessage.from_dict({"type": "NEW_IMAGE", "payload": ""}) is None

    def test_from_dict_missing_fields(self):
        """NEW_IMAGE with a payload but no checksum is invalid."""
        with pytest.raises(ValueError):
            BulkPayloadMessage.from_dict({"type": "NEW_IMAGE", "payload": "x", "total": 1})

    def test_to_pending(self):
        """Pending payload keeps every field."""
        message = BulkPayloadMessage(payload="QUJD", checksum="ff", enc=1, total=2)
        assert message.to_pending() == PendingPayload(payload="QUJD", checksum="ff", enc=1, total=2)


class TestAgreement:
    """Tests for trigger/pending agreement."""

    def test_matches(self):
        """Same total and checksum agree."""
        pending = PendingPayload(payload="x", checksum="ab", enc=0, total=3)
        assert pending.matches(NarrowChannelTrigger(total=3, checksum="ab"))

    def test_total_differs(self):
        """Different totals disagree."""
        pending = PendingPayload(payload="x", checksum="ab", enc=0, total=3)
        assert not pending.matches(NarrowChannelTrigger(total=4, checksum="ab"))

    def test_checksum_case_sensitive(self):
        """Checksum comparison is exact."""
        pending = PendingPayload(payload="x", checksum="ab", enc=0, total=3)
        assert not pending.matches(NarrowChannelTrigger(total=3, checksum="AB"))


class TestTransmissionId:
    """Tests for attempt IDs."""

    def test_base36(self):
        """Base-36 rendering."""
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"
        assert to_base36(1295) == "zz"

    def test_new_id(self):
        """IDs are lowercase base-36."""
        tid = new_transmission_id()
        assert tid
        assert all(c in "0123456789abcdefghijklmnopqrstuvwxyz" for c in tid)
