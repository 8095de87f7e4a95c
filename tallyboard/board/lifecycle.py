"""Board broker: owns the shared state and runs each socket connection."""

from __future__ import annotations

import logging

import anyio
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from tallyboard.board.auth import AuthorizationGate
from tallyboard.board.hub import BroadcastHub, Outbox
from tallyboard.board.processor import CommandProcessor
from tallyboard.board.protocol import DecodeError, decode, sync_state
from tallyboard.board.sessions import Session, SessionRegistry
from tallyboard.board.store import EntityStore

logger = logging.getLogger("tallyboard.broker")

PING = "ping"
PONG = "pong"


class Broker:
    """Connection lifecycle manager for the counter board.

    All state lives on the instance and starts empty. Every mutation goes
    through ``dispatch``, which runs without suspending.
    """

    def __init__(self, admin_password: str, outbox_size: int = 256):
        if not admin_password:
            raise ValueError("Admin password must not be empty")
        self.store = EntityStore()
        self.registry = SessionRegistry()
        self.gate = AuthorizationGate(self.registry, admin_password)
        self.hub = BroadcastHub(self.registry)
        self.processor = CommandProcessor(self.store, self.gate, self.hub)
        self.outbox_size = outbox_size

    def open_session(self, connection: Outbox) -> Session:
        """Register a connection and queue its initial snapshot."""
        session = self.registry.register(connection)
        self.hub.send(
            session,
            sync_state(self.store.snapshot(), self.registry.authenticated_count(), session.session_id),
        )
        logger.info(f"Client connected: {session.session_id} ({self.registry.count()} total)")
        return session

    def close_session(self, connection: Outbox) -> None:
        connection.close()
        session = self.registry.deregister(connection)
        if session is not None:
            logger.info(f"Client disconnected: {session.session_id} ({self.registry.count()} remaining)")
        self.hub.broadcast_auth_status()

    def dispatch(self, session: Session, text: str | bytes) -> None:
        """Decode one inbound frame and apply it. Malformed frames are dropped."""
        if text == PING:
            session.connection.offer(PONG)
            return
        try:
            message = decode(text)
            self.processor.handle(session, message)
        except DecodeError as e:
            logger.warning(f"Dropping malformed frame from {session.session_id}: {e}")

    async def serve(self, ws: WebSocket) -> None:
        """Run one connection from accept until close, error or overflow.

        Cleanup after the task group is synchronous so it also completes when
        the handler is being cancelled.
        """
        await ws.accept()
        outbox = Outbox(ws, maxsize=self.outbox_size)
        session = self.open_session(outbox)
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._write, outbox, tg.cancel_scope)
                await self._read(ws, session)
                outbox.close()
        finally:
            self.close_session(outbox)
        if ws.client_state == WebSocketState.CONNECTED:
            await self._close_socket(ws)

    async def _write(self, outbox: Outbox, scope: anyio.CancelScope) -> None:
        await outbox.run()
        # Writer gone (overflow or send failure): stop reading as well
        scope.cancel()

    async def _read(self, ws: WebSocket, session: Session) -> None:
        while True:
            frame = await ws.receive()
            if frame["type"] == "websocket.disconnect":
                return
            data = frame.get("text")
            if data is None:
                data = frame.get("bytes")
            if data is not None:
                self.dispatch(session, data)

    async def _close_socket(self, ws: WebSocket) -> None:
        try:
            await ws.close()
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            logger.debug(f"Socket already gone while closing: {e!r}")

    def stats(self) -> dict:
        return {
            "connectedClients": self.registry.count(),
            "authenticatedClients": self.registry.authenticated_count(),
            "currentPeople": [p.to_dict() for p in self.store.snapshot()],
        }

    def shutdown(self) -> None:
        """Close every session and discard all state."""
        sessions = self.registry.all()
        for session in sessions:
            session.connection.close()
        self.registry.clear()
        self.store.clear()
        logger.info(f"Broker shut down, closed {len(sessions)} session(s)")
