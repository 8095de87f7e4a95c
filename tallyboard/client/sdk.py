"""Tallyboard client SDK: bootstrap over HTTP, live board over WebSocket."""

from __future__ import annotations

import logging
import time
from typing import Generator

import httpx
from websockets.exceptions import ConnectionClosed, InvalidHandshake
from websockets.sync.client import ClientConnection, connect

from tallyboard.board.auth import AUTH_REQUIRED_MESSAGE
from tallyboard.board.protocol import Message, MessageType, decode, encode
from tallyboard.client.view import BoardView

logger = logging.getLogger("tallyboard.client")


class BoardClient:
    """Client for a Tallyboard server.

    Usage:
        with BoardClient("http://localhost:8080", password="admin123") as client:
            client.connect()
            client.add("Bob")
            for message in client.listen():
                print(client.view.people)
    """

    def __init__(
        self,
        server: str,
        password: str | None = None,
        reconnect_delay: float = 3.0,
        timeout: float = 10.0,
    ):
        self.server = server.rstrip("/")
        self.password = password
        self.reconnect_delay = reconnect_delay
        self.timeout = timeout
        self.view = BoardView()
        self._http = httpx.Client(base_url=self.server, timeout=timeout)
        self._ws: ClientConnection | None = None

    @property
    def ws_url(self) -> str:
        return self.server.replace("http://", "ws://").replace("https://", "wss://") + "/ws"

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def status(self) -> dict:
        """Start the broker if needed and return its current stats."""
        resp = self._http.get("/api/websocket")
        resp.raise_for_status()
        return resp.json()

    def connect(self) -> Message:
        """Open the socket and wait for the initial snapshot.

        Authenticates right away when the client was given a password.
        """
        self.status()
        self._ws = connect(self.ws_url, open_timeout=self.timeout)
        snapshot = self.wait_for(MessageType.SYNC_STATE)
        logger.info(f"Connected as {self.view.client_id} ({len(self.view.people)} entries)")
        if self.password is not None:
            self.authenticate(self.password)
        return snapshot

    def recv(self, timeout: float | None = None) -> Message:
        if self._ws is None:
            raise ConnectionError("Not connected")
        message = decode(self._ws.recv(timeout=timeout))
        self.view.apply(message)
        return message

    def wait_for(self, *types: MessageType, timeout: float | None = None) -> Message:
        """Read messages, applying each to the view, until one of ``types`` arrives."""
        timeout = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError(f"No {'/'.join(t.value for t in types)} within {timeout}s")
            message = self.recv(timeout=remaining)
            if message.kind in types:
                return message

    def _send(self, kind: MessageType, payload: dict) -> None:
        if self._ws is None:
            raise ConnectionError("Not connected")
        self._ws.send(encode(Message(type=kind.value, payload=payload)))

    def _require_auth(self) -> None:
        if not self.view.authenticated:
            raise PermissionError(AUTH_REQUIRED_MESSAGE)

    def authenticate(self, password: str) -> bool:
        self._send(MessageType.AUTHENTICATE, {"password": password})
        self.wait_for(MessageType.AUTH_SUCCESS, MessageType.AUTH_FAILED)
        if not self.view.authenticated:
            logger.warning(f"Authentication rejected: {self.view.auth_message}")
        return self.view.authenticated

    def add(self, name: str) -> None:
        if not name.strip():
            raise ValueError("Name must not be empty")
        self._send(MessageType.ADD_PERSON, {"name": name})

    def increment(self, entry_id: int) -> None:
        self._require_auth()
        self._send(MessageType.UPDATE_COUNT, {"id": entry_id, "increment": True})

    def decrement(self, entry_id: int) -> None:
        self._require_auth()
        self._send(MessageType.UPDATE_COUNT, {"id": entry_id, "increment": False})

    def remove(self, entry_id: int) -> None:
        self._require_auth()
        self._send(MessageType.REMOVE_PERSON, {"id": entry_id})

    def listen(self) -> Generator[Message, None, None]:
        """Yield server messages forever, reconnecting with a fixed delay.

        Each reconnect yields the fresh SYNC_STATE first.
        """
        while True:
            try:
                if self._ws is None:
                    yield self.connect()
                while True:
                    yield self.recv()
            except (ConnectionClosed, InvalidHandshake, httpx.HTTPError, OSError) as e:
                logger.warning(f"Connection lost ({e}), reconnecting in {self.reconnect_delay}s")
                self._drop()
                time.sleep(self.reconnect_delay)

    def _drop(self) -> None:
        if self._ws is not None:
            self._ws.close()
            self._ws = None
        self.view.reset()

    def close(self):
        self._drop()
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
