"""Fan-out of outbound frames to every live session."""

from __future__ import annotations

import logging

import anyio
from fastapi import WebSocket

from tallyboard.board.protocol import Message, auth_status_update, encode
from tallyboard.board.sessions import Session, SessionRegistry

logger = logging.getLogger("tallyboard.hub")


class Outbox:
    """Buffered sender for one WebSocket.

    ``offer`` never waits: frames go into a bounded memory stream that
    ``run`` drains in order. A connection that falls ``maxsize`` frames
    behind is closed instead of stalling everyone else.
    """

    def __init__(self, ws: WebSocket, maxsize: int = 256):
        self._ws = ws
        self._maxsize = maxsize
        self._send, self._receive = anyio.create_memory_object_stream(max_buffer_size=maxsize)
        self._closed = False
        self._scope: anyio.CancelScope | None = None

    @property
    def open(self) -> bool:
        return not self._closed

    @property
    def pending(self) -> int:
        return self._send.statistics().current_buffer_used

    def offer(self, text: str) -> bool:
        if self._closed:
            return False
        try:
            self._send.send_nowait(text)
        except anyio.WouldBlock:
            logger.warning(f"Outbox full ({self._maxsize} frames), dropping connection")
            self.close()
            return False
        return True

    def close(self) -> None:
        self._closed = True
        if self._scope is not None:
            self._scope.cancel()

    async def run(self) -> None:
        """Drain queued frames to the socket until closed or a send fails."""
        try:
            with anyio.CancelScope() as scope:
                self._scope = scope
                if self._closed:
                    scope.cancel()
                async for text in self._receive:
                    await self._ws.send_text(text)
        except Exception as e:
            logger.info(f"Send failed, treating connection as gone: {e!r}")
        finally:
            self._closed = True
            self._send.close()
            self._receive.close()


class BroadcastHub:
    """Sends messages to single sessions or to all registered sessions."""

    def __init__(self, registry: SessionRegistry):
        self._registry = registry

    def send(self, session: Session, message: Message) -> bool:
        """Reply to one session only."""
        return session.connection.offer(encode(message))

    def broadcast(self, message: Message) -> int:
        """Encode once and offer to every open session, in registration order.

        Closed connections are skipped. Connections that cannot take the frame
        are deregistered; their own serve loop finishes the cleanup.
        """
        data = encode(message)
        delivered = 0
        for session in self._registry.all():
            conn = session.connection
            if not conn.open:
                continue
            if conn.offer(data):
                delivered += 1
            else:
                self._registry.deregister(conn)
        logger.debug(f"Broadcast {message.type} to {delivered} session(s)")
        return delivered

    def broadcast_auth_status(self) -> int:
        return self.broadcast(auth_status_update(self._registry.authenticated_count()))
