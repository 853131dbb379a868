"""FastAPI WebSocket adapter — plays the transport layer, no business logic.

Each socket gets a fresh connection id. Text messages are routed the way an
API Gateway WebSocket API routes them: by the ``action`` field of the JSON
body, ``$default`` when there is none.
"""

from __future__ import annotations

import json
import logging
import uuid

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from chat_relay import create_router
from chat_relay.config import Settings, configure_logging, load_settings
from chat_relay.relay.errors import DeliveryError, StaleConnectionError
from chat_relay.relay.models import TransportEvent
from chat_relay.relay.pusher import ConnectionPusher
from chat_relay.relay.router import MessageRouter

logger = logging.getLogger(__name__)


class WebSocketPusher(ConnectionPusher):
    """Registry of live sockets keyed by connection id."""

    def __init__(self) -> None:
        self._sockets: dict[str, WebSocket] = {}

    def register(self, connection_id: str, websocket: WebSocket) -> None:
        self._sockets[connection_id] = websocket

    def unregister(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._sockets

    async def push(self, connection_id: str, payload: bytes) -> None:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            raise StaleConnectionError(f"connection {connection_id} is gone")
        try:
            await websocket.send_text(payload.decode("utf-8"))
        except WebSocketDisconnect as exc:
            self.unregister(connection_id)
            raise StaleConnectionError(f"connection {connection_id} closed") from exc
        except RuntimeError as exc:
            raise DeliveryError(f"send failed on {connection_id}: {exc}") from exc


def route_key_for(message: str) -> str:
    try:
        body = json.loads(message)
    except json.JSONDecodeError:
        return "$default"
    if isinstance(body, dict) and isinstance(body.get("action"), str):
        return body["action"]
    return "$default"


def create_app(settings: Settings | None = None, router: MessageRouter | None = None,
               pusher: WebSocketPusher | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    pusher = pusher or WebSocketPusher()
    router = router or create_router(pusher, settings=settings)
    app = FastAPI(title="Chat Relay", version="0.1.0")

    @app.websocket("/ws")
    async def relay(websocket: WebSocket) -> None:
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        pusher.register(connection_id, websocket)
        await router.handle(TransportEvent(connection_id=connection_id, route_key="$connect"))
        try:
            # One event at a time per socket: at most one in-flight ask per connection.
            while True:
                message = await websocket.receive_text()
                await router.handle(TransportEvent(
                    connection_id=connection_id,
                    route_key=route_key_for(message),
                    body=message,
                ))
        except WebSocketDisconnect:
            logger.info("Socket closed connection=%s", connection_id)
        finally:
            pusher.unregister(connection_id)
            await router.handle(TransportEvent(connection_id=connection_id, route_key="$disconnect"))

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return app


def serve() -> None:
    """Entry-point for ``relay-web`` console script."""
    import uvicorn

    uvicorn.run(
        "chat_relay.adapters.web_fastapi.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )
