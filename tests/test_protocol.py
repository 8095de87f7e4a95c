"""Tests for the JSON message envelope."""

import json

import pytest

from tallyboard.board import protocol
from tallyboard.board.protocol import DecodeError, Message, MessageType, decode, encode
from tallyboard.board.store import CounterEntry


class TestDecode:
    def test_valid_envelope(self):
        message = decode('{"type": "ADD_PERSON", "payload": {"name": "Bob"}}')
        assert message.type == "ADD_PERSON"
        assert message.kind is MessageType.ADD_PERSON
        assert message.payload == {"name": "Bob"}

    def test_bytes_frame(self):
        assert decode(b'{"type": "AUTHENTICATE", "payload": {"password": "x"}}').kind is MessageType.AUTHENTICATE

    def test_missing_payload_defaults_to_empty(self):
        assert decode('{"type": "ADD_PERSON"}').payload == {}

    def test_unknown_type_decodes(self):
        message = decode('{"type": "DANCE", "payload": {}}')
        assert message.type == "DANCE"
        assert message.kind is None

    @pytest.mark.parametrize(
        "frame",
        [
            "not json",
            "",
            "[1, 2, 3]",
            '"ADD_PERSON"',
            '{"payload": {}}',
            '{"type": 5, "payload": {}}',
            '{"type": "ADD_PERSON", "payload": "Bob"}',
            '{"type": "ADD_PERSON", "payload": [1]}',
        ],
    )
    def test_malformed(self, frame):
        with pytest.raises(DecodeError):
            decode(frame)


class TestEncode:
    def test_envelope_shape(self):
        text = encode(protocol.count_updated(CounterEntry(id=7, name="Bob", count=2)))
        assert json.loads(text) == {"type": "COUNT_UPDATED", "payload": {"id": 7, "count": 2}}

    def test_enum_type_encodes_as_string(self):
        text = encode(Message(type=MessageType.PERSON_REMOVED, payload={"id": 1}))
        assert json.loads(text)["type"] == "PERSON_REMOVED"

    def test_sync_state(self):
        people = [CounterEntry(id=1, name="A", count=0), CounterEntry(id=2, name="B", count=4)]
        message = protocol.sync_state(people, 3, "abc")
        assert message.payload == {
            "people": [{"id": 1, "name": "A", "count": 0}, {"id": 2, "name": "B", "count": 4}],
            "authenticatedCount": 3,
            "clientId": "abc",
        }

    def test_server_messages(self):
        entry = CounterEntry(id=9, name="Bob", count=0)
        assert protocol.person_added(entry).payload == {"id": 9, "name": "Bob", "count": 0}
        assert protocol.person_removed(9).payload == {"id": 9}
        assert protocol.auth_success("ok").payload == {"message": "ok"}
        assert protocol.auth_failed("no").type == "AUTH_FAILED"
        assert protocol.auth_status_update(2).payload == {"authenticatedCount": 2}


class TestPayloadReaders:
    def test_read_fields(self):
        message = Message(type="UPDATE_COUNT", payload={"id": 3, "increment": False})
        assert protocol.read_id(message) == 3
        assert protocol.read_increment(message) is False

    def test_missing_field(self):
        with pytest.raises(DecodeError):
            protocol.read_name(Message(type="ADD_PERSON", payload={}))

    @pytest.mark.parametrize("value", ["3", 3.5, None, True])
    def test_bad_id(self, value):
        with pytest.raises(DecodeError):
            protocol.read_id(Message(type="REMOVE_PERSON", payload={"id": value}))

    def test_bad_increment(self):
        with pytest.raises(DecodeError):
            protocol.read_increment(Message(type="UPDATE_COUNT", payload={"id": 1, "increment": 1}))

    def test_bad_password(self):
        with pytest.raises(DecodeError):
            protocol.read_password(Message(type="AUTHENTICATE", payload={"password": 123}))
