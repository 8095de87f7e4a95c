"""FastAPI server hosting the counter board socket and its bootstrap endpoint."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.responses import JSONResponse

from tallyboard.board.lifecycle import Broker

logger = logging.getLogger("tallyboard.server")

DEFAULT_ADMIN_PASSWORD = "admin123"
DEFAULT_PORT = 8080
DEFAULT_HOST = "0.0.0.0"
DEFAULT_OUTBOX_SIZE = 256


class ServerState:
    """Mutable server state, filled in by ``configure``."""

    admin_password: str
    port: int
    host: str
    outbox_size: int
    broker: Broker | None


state = ServerState()
state.broker = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Tallyboard server started on {state.host}:{state.port}")
    yield
    if state.broker is not None:
        state.broker.shutdown()
        state.broker = None
    logger.info("Tallyboard server shutting down")


app = FastAPI(
    title="Tallyboard",
    description="Shared counter board synchronized over WebSocket",
    version="0.1.0",
    lifespan=lifespan,
)


def configure(
    admin_password: str | None = None,
    port: int | None = None,
    host: str | None = None,
    outbox_size: int = DEFAULT_OUTBOX_SIZE,
) -> FastAPI:
    """Configure the server before starting.

    Unset values come from ``ADMIN_PASSWORD``, ``WS_PORT`` and ``WS_HOST``.
    Any running broker is shut down; the next bootstrap or socket starts a
    fresh one.
    """
    if admin_password is None:
        admin_password = os.environ.get("ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD)
    if port is None:
        port = int(os.environ.get("WS_PORT", DEFAULT_PORT))
    if host is None:
        host = os.environ.get("WS_HOST", DEFAULT_HOST)

    if state.broker is not None:
        state.broker.shutdown()
    state.admin_password = admin_password
    state.port = port
    state.host = host
    state.outbox_size = outbox_size
    state.broker = None
    return app


def ensure_broker() -> Broker:
    """Start the broker on first use and return the running instance."""
    if state.broker is None:
        logger.info("Starting board broker")
        state.broker = Broker(state.admin_password, outbox_size=state.outbox_size)
    return state.broker


configure()


# --- API Endpoints ---


@app.get("/health")
async def health():
    broker = state.broker
    return {
        "status": "ok",
        "running": broker is not None,
        "ws_clients": broker.registry.count() if broker is not None else 0,
    }


@app.get("/api/websocket")
async def bootstrap():
    """Start the broker if needed and report what it currently holds."""
    try:
        broker = ensure_broker()
    except Exception as e:
        logger.error(f"Failed to start board broker: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to start the board broker", "details": str(e)},
        )
    return {
        "message": "Board broker is running",
        "port": state.port,
        **broker.stats(),
    }


@app.websocket("/ws")
async def board_socket(websocket: WebSocket):
    await ensure_broker().serve(websocket)
