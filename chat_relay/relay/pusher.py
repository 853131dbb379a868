"""Connection pusher — ABC, frame codec, API Gateway and recording implementations."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from chat_relay.relay.errors import DeliveryError, StaleConnectionError
from chat_relay.relay.models import Frame, FrameFormat, FrameType

logger = logging.getLogger(__name__)

END_MARKER = b"End"


class ConnectionPusher(ABC):
    """Delivers frames to one open connection.

    ``push`` sends exactly one frame. Raises :class:`StaleConnectionError`
    when the connection is gone and :class:`DeliveryError` on any other
    failure.
    """

    @abstractmethod
    async def push(self, connection_id: str, payload: bytes) -> None: ...

    async def push_end(self, connection_id: str, marker: bytes = END_MARKER) -> None:
        await self.push(connection_id, marker)


class FrameCodec:
    """Encodes answer / error / end frames for the selected wire format.

    ``text`` keeps the plain contract: answer text, then the literal ``End``.
    Errors have no text representation there, so ``error`` returns ``None``.
    """

    def __init__(self, fmt: FrameFormat = FrameFormat.TEXT) -> None:
        self.format = FrameFormat(fmt)

    def answer(self, text: str) -> bytes:
        if self.format is FrameFormat.TEXT:
            return text.encode("utf-8")
        return self._json(Frame(type=FrameType.ANSWER, text=text))

    def end(self) -> bytes:
        if self.format is FrameFormat.TEXT:
            return END_MARKER
        return self._json(Frame(type=FrameType.END))

    def error(self, message: str) -> bytes | None:
        if self.format is FrameFormat.TEXT:
            return None
        return self._json(Frame(type=FrameType.ERROR, text=message))

    @staticmethod
    def _json(frame: Frame) -> bytes:
        return frame.model_dump_json(exclude_none=True).encode("utf-8")


# ---------------------------------------------------------------------------
# API Gateway WebSocket management API
# ---------------------------------------------------------------------------

class ApiGatewayPusher(ConnectionPusher):
    def __init__(self, endpoint_url: str, region: str | None = None, client: Any = None) -> None:
        if client is None:
            # Late import so the rest of the package works without boto3 installed
            import boto3

            client = boto3.client("apigatewaymanagementapi", endpoint_url=endpoint_url, region_name=region)
        self._client = client

    async def push(self, connection_id: str, payload: bytes) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            await asyncio.to_thread(self._client.post_to_connection, ConnectionId=connection_id, Data=payload)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "GoneException":
                raise StaleConnectionError(f"connection {connection_id} is gone") from exc
            raise DeliveryError(f"post_to_connection failed: {exc}") from exc
        except BotoCoreError as exc:
            raise DeliveryError(f"post_to_connection failed: {exc}") from exc


# ---------------------------------------------------------------------------
# In-memory recorder for tests and local demos
# ---------------------------------------------------------------------------

class RecordingPusher(ConnectionPusher):
    """Appends ``(connection_id, payload)`` to :attr:`frames`.

    Connections in :attr:`gone` raise :class:`StaleConnectionError`; those in
    :attr:`broken` raise :class:`DeliveryError`.
    """

    def __init__(self) -> None:
        self.frames: list[tuple[str, bytes]] = []
        self.gone: set[str] = set()
        self.broken: set[str] = set()

    async def push(self, connection_id: str, payload: bytes) -> None:
        if connection_id in self.gone:
            raise StaleConnectionError(f"connection {connection_id} is gone")
        if connection_id in self.broken:
            raise DeliveryError(f"connection {connection_id} rejected the frame")
        self.frames.append((connection_id, payload))

    def frames_for(self, connection_id: str) -> list[bytes]:
        return [payload for cid, payload in self.frames if cid == connection_id]
