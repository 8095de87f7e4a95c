"""Applies client commands to the board and decides what gets broadcast."""

from __future__ import annotations

import logging
from typing import Callable

from tallyboard.board import protocol
from tallyboard.board.auth import AuthorizationGate, Denied
from tallyboard.board.hub import BroadcastHub
from tallyboard.board.protocol import Message, MessageType
from tallyboard.board.sessions import Session
from tallyboard.board.store import EntityStore, NotFound, ValidationError

logger = logging.getLogger("tallyboard.processor")


class CommandProcessor:
    """Synchronous command handler.

    ``handle`` never awaits, so a command and the broadcasts it triggers are
    applied as one step relative to every other event on the loop.
    Malformed payloads raise ``DecodeError`` to the caller.
    """

    def __init__(self, store: EntityStore, gate: AuthorizationGate, hub: BroadcastHub):
        self._store = store
        self._gate = gate
        self._hub = hub
        self._handlers: dict[MessageType, Callable[[Session, Message], None]] = {
            MessageType.AUTHENTICATE: self._authenticate,
            MessageType.ADD_PERSON: self._add_person,
            MessageType.UPDATE_COUNT: self._update_count,
            MessageType.REMOVE_PERSON: self._remove_person,
        }

    def handle(self, session: Session, message: Message) -> None:
        handler = self._handlers.get(message.kind)
        if handler is None:
            logger.warning(f"Unknown message type from {session.session_id}: {message.type!r}")
            return
        handler(session, message)

    def _authorized(self, session: Session, kind: MessageType) -> bool:
        decision = self._gate.check(session.connection, kind)
        if isinstance(decision, Denied):
            logger.info(f"Rejected {kind.value} from unauthenticated client {session.session_id}")
            self._hub.send(session, protocol.auth_failed(decision.message))
            return False
        return True

    def _authenticate(self, session: Session, message: Message) -> None:
        password = protocol.read_password(message)
        decision = self._gate.authenticate(session.connection, password)
        if isinstance(decision, Denied):
            logger.info(f"Authentication failed for client {session.session_id}")
            self._hub.send(session, protocol.auth_failed(decision.message))
            return
        logger.info(f"Client {session.session_id} authenticated")
        self._hub.send(session, protocol.auth_success(decision.message))
        self._hub.broadcast_auth_status()

    def _add_person(self, session: Session, message: Message) -> None:
        name = protocol.read_name(message)
        try:
            entry = self._store.add(name)
        except ValidationError:
            logger.debug(f"Ignoring ADD_PERSON with empty name from {session.session_id}")
            return
        logger.info(f"Added entry {entry.id} ({entry.name!r})")
        self._hub.broadcast(protocol.person_added(entry))

    def _update_count(self, session: Session, message: Message) -> None:
        if not self._authorized(session, MessageType.UPDATE_COUNT):
            return
        entry_id = protocol.read_id(message)
        increment = protocol.read_increment(message)
        try:
            entry = self._store.update_count(entry_id, increment)
        except NotFound:
            logger.debug(f"UPDATE_COUNT for unknown entry {entry_id}, ignoring")
            return
        self._hub.broadcast(protocol.count_updated(entry))

    def _remove_person(self, session: Session, message: Message) -> None:
        if not self._authorized(session, MessageType.REMOVE_PERSON):
            return
        entry_id = protocol.read_id(message)
        if not self._store.remove(entry_id):
            # Broadcast regardless; clients drop ids they do not have
            logger.debug(f"REMOVE_PERSON for unknown entry {entry_id}")
        else:
            logger.info(f"Removed entry {entry_id}")
        self._hub.broadcast(protocol.person_removed(entry_id))
