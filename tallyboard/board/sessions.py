"""Registry of live connections and their authentication state."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


@dataclass(eq=False)
class Session:
    """Server-side record of one connection.

    The only state transition is UNAUTHENTICATED -> AUTHENTICATED, and it holds
    until the connection goes away.
    """

    connection: Any
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: AuthState = AuthState.UNAUTHENTICATED

    @property
    def authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    def authenticate(self) -> None:
        self.state = AuthState.AUTHENTICATED


class SessionRegistry:
    """Sessions keyed by connection handle, in registration order."""

    def __init__(self):
        self._sessions: dict[Hashable, Session] = {}

    def register(self, connection: Hashable) -> Session:
        if connection in self._sessions:
            return self._sessions[connection]
        session = Session(connection=connection)
        self._sessions[connection] = session
        return session

    def deregister(self, connection: Hashable) -> Session | None:
        return self._sessions.pop(connection, None)

    def get(self, connection: Hashable) -> Session | None:
        return self._sessions.get(connection)

    def set_authenticated(self, connection: Hashable) -> None:
        session = self._sessions.get(connection)
        if session is not None:
            session.authenticate()

    def is_authenticated(self, connection: Hashable) -> bool:
        session = self._sessions.get(connection)
        return session is not None and session.authenticated

    def count(self) -> int:
        return len(self._sessions)

    def authenticated_count(self) -> int:
        return sum(1 for s in self._sessions.values() if s.authenticated)

    def all(self) -> list[Session]:
        return list(self._sessions.values())

    def clear(self) -> None:
        self._sessions.clear()

    def __contains__(self, connection: Hashable) -> bool:
        return connection in self._sessions
