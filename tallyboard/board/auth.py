"""Authorization gate: which commands need the admin secret, and who has it."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Hashable

from tallyboard.board.protocol import MessageType
from tallyboard.board.sessions import SessionRegistry

AUTH_SUCCESS_MESSAGE = "Authentication succeeded"
WRONG_PASSWORD_MESSAGE = "Incorrect password"
AUTH_REQUIRED_MESSAGE = "This action requires authentication"

_GATED = frozenset({MessageType.UPDATE_COUNT, MessageType.REMOVE_PERSON})


@dataclass(frozen=True)
class Allowed:
    message: str = ""


@dataclass(frozen=True)
class Denied:
    message: str


def requires_auth(command: MessageType | str) -> bool:
    """ADD_PERSON is open to everyone; AUTHENTICATE is the check itself."""
    kind = MessageType.parse(command) if isinstance(command, str) else command
    return kind in _GATED


class AuthorizationGate:
    def __init__(self, registry: SessionRegistry, admin_password: str):
        self._registry = registry
        self._admin_password = admin_password

    def check(self, connection: Hashable, command: MessageType | str) -> Allowed | Denied:
        if not requires_auth(command):
            return Allowed()
        if self._registry.is_authenticated(connection):
            return Allowed()
        return Denied(AUTH_REQUIRED_MESSAGE)

    def authenticate(self, connection: Hashable, password: str) -> Allowed | Denied:
        """Compare against the shared secret and promote the session on a match.

        Attempts are not throttled.
        """
        if not hmac.compare_digest(password.encode("utf-8"), self._admin_password.encode("utf-8")):
            return Denied(WRONG_PASSWORD_MESSAGE)
        self._registry.set_authenticated(connection)
        return Allowed(AUTH_SUCCESS_MESSAGE)
