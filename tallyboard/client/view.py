"""Client-side mirror of the board, rebuilt from server messages."""

from __future__ import annotations

from tallyboard.board.protocol import Message, MessageType


class BoardView:
    """Local copy of the board as seen by one client."""

    def __init__(self):
        self.people: list[dict] = []
        self.authenticated = False
        self.authenticated_count = 0
        self.client_id = ""
        self.auth_message = ""

    def reset(self) -> None:
        """Forget connection-scoped state after the socket drops."""
        self.authenticated = False
        self.auth_message = ""

    def find(self, entry_id: int) -> dict | None:
        for person in self.people:
            if person["id"] == entry_id:
                return person
        return None

    def apply(self, message: Message) -> None:
        kind = message.kind
        payload = message.payload

        if kind is MessageType.SYNC_STATE:
            self.people = [dict(p) for p in payload.get("people", [])]
            self.authenticated_count = payload.get("authenticatedCount", 0)
            self.client_id = payload.get("clientId", "")
        elif kind is MessageType.PERSON_ADDED:
            if self.find(payload["id"]) is None:
                self.people.append(dict(payload))
        elif kind is MessageType.COUNT_UPDATED:
            person = self.find(payload["id"])
            if person is not None:
                person["count"] = payload["count"]
        elif kind is MessageType.PERSON_REMOVED:
            self.people = [p for p in self.people if p["id"] != payload["id"]]
        elif kind is MessageType.AUTH_SUCCESS:
            self.authenticated = True
            self.auth_message = payload.get("message", "")
        elif kind is MessageType.AUTH_FAILED:
            self.authenticated = False
            self.auth_message = payload.get("message", "")
        elif kind is MessageType.AUTH_STATUS_UPDATE:
            self.authenticated_count = payload.get("authenticatedCount", 0)
