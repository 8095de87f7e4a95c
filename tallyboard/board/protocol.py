"""JSON message envelope exchanged over the board socket.

Every frame is a single JSON object of the form::

    {"type": "<MessageType>", "payload": {...}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tallyboard.board.store import CounterEntry


class DecodeError(Exception):
    """Raised when a frame is not a valid envelope or a payload is malformed."""


class MessageType(str, Enum):
    # client -> server
    ADD_PERSON = "ADD_PERSON"
    UPDATE_COUNT = "UPDATE_COUNT"
    REMOVE_PERSON = "REMOVE_PERSON"
    AUTHENTICATE = "AUTHENTICATE"
    # server -> client
    SYNC_STATE = "SYNC_STATE"
    PERSON_ADDED = "PERSON_ADDED"
    COUNT_UPDATED = "COUNT_UPDATED"
    PERSON_REMOVED = "PERSON_REMOVED"
    AUTH_SUCCESS = "AUTH_SUCCESS"
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_STATUS_UPDATE = "AUTH_STATUS_UPDATE"

    @classmethod
    def parse(cls, value: str) -> "MessageType | None":
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class Message:
    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> MessageType | None:
        """The known message type, or None for unrecognized types."""
        return MessageType.parse(self.type)


def encode(message: Message) -> str:
    msg_type = message.type.value if isinstance(message.type, MessageType) else message.type
    return json.dumps({"type": msg_type, "payload": message.payload})


def decode(text: str | bytes) -> Message:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Frame is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError("Frame must be a JSON object")
    msg_type = data.get("type")
    if not isinstance(msg_type, str):
        raise DecodeError("Frame is missing a string 'type'")
    payload = data.get("payload")
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise DecodeError(f"Payload of {msg_type} must be an object")
    return Message(type=msg_type, payload=payload)


# --- Payload readers ---


def _field(message: Message, key: str) -> Any:
    if key not in message.payload:
        raise DecodeError(f"{message.type} payload is missing '{key}'")
    return message.payload[key]


def read_password(message: Message) -> str:
    value = _field(message, "password")
    if not isinstance(value, str):
        raise DecodeError("'password' must be a string")
    return value


def read_name(message: Message) -> str:
    value = _field(message, "name")
    if not isinstance(value, str):
        raise DecodeError("'name' must be a string")
    return value


def read_id(message: Message) -> int:
    value = _field(message, "id")
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError("'id' must be an integer")
    return value


def read_increment(message: Message) -> bool:
    value = _field(message, "increment")
    if not isinstance(value, bool):
        raise DecodeError("'increment' must be a boolean")
    return value


# --- Server -> client messages ---


def sync_state(people: list[CounterEntry], authenticated_count: int, client_id: str) -> Message:
    return Message(
        type=MessageType.SYNC_STATE.value,
        payload={
            "people": [p.to_dict() for p in people],
            "authenticatedCount": authenticated_count,
            "clientId": client_id,
        },
    )


def person_added(entry: CounterEntry) -> Message:
    return Message(type=MessageType.PERSON_ADDED.value, payload=entry.to_dict())


def count_updated(entry: CounterEntry) -> Message:
    return Message(
        type=MessageType.COUNT_UPDATED.value,
        payload={"id": entry.id, "count": entry.count},
    )


def person_removed(entry_id: int) -> Message:
    return Message(type=MessageType.PERSON_REMOVED.value, payload={"id": entry_id})


def auth_success(text: str) -> Message:
    return Message(type=MessageType.AUTH_SUCCESS.value, payload={"message": text})


def auth_failed(text: str) -> Message:
    return Message(type=MessageType.AUTH_FAILED.value, payload={"message": text})


def auth_status_update(authenticated_count: int) -> Message:
    return Message(
        type=MessageType.AUTH_STATUS_UPDATE.value,
        payload={"authenticatedCount": authenticated_count},
    )
