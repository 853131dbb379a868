"""Core data models and the inbound-event parser.

Depends only on Pydantic, the stdlib, and ``relay.errors``.
"""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chat_relay.relay.errors import MalformedRequestError


# ---------------------------------------------------------------------------
# Raw transport envelope (adapter → router)
# ---------------------------------------------------------------------------

class TransportEvent(BaseModel):
    """One inbound event exactly as the transport layer delivered it."""
    connection_id: str
    route_key: str
    body: str | bytes | None = None
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


# ---------------------------------------------------------------------------
# Parsed inbound variants
# ---------------------------------------------------------------------------

class EventKind(str, Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    ASK = "ask"
    UNKNOWN = "unknown"


ROUTE_KINDS: dict[str, EventKind] = {
    "$connect": EventKind.CONNECT,
    "connect": EventKind.CONNECT,
    "$disconnect": EventKind.DISCONNECT,
    "disconnect": EventKind.DISCONNECT,
    "ask": EventKind.ASK,
}


class _Inbound(BaseModel):
    model_config = ConfigDict(frozen=True)

    connection_id: str
    event_id: str


class ConnectEvent(_Inbound):
    kind: Literal[EventKind.CONNECT] = EventKind.CONNECT


class DisconnectEvent(_Inbound):
    kind: Literal[EventKind.DISCONNECT] = EventKind.DISCONNECT


class AskEvent(_Inbound):
    kind: Literal[EventKind.ASK] = EventKind.ASK
    token: str
    prompt: str


class UnknownEvent(_Inbound):
    kind: Literal[EventKind.UNKNOWN] = EventKind.UNKNOWN
    route_key: str


InboundEvent = Union[ConnectEvent, DisconnectEvent, AskEvent, UnknownEvent]


class AskBody(BaseModel):
    """JSON body of an ``ask`` request: ``{"action", "token", "data"}``."""
    model_config = ConfigDict(extra="ignore")

    action: str | None = None
    token: str = Field(min_length=1)
    data: str = Field(min_length=1)


def parse_event(raw: TransportEvent) -> InboundEvent:
    """Classify *raw* by route key and validate the ask body.

    Raises :class:`MalformedRequestError` when an ask body is missing, is
    not a JSON object, or lacks a non-empty string ``token`` / ``data``.
    """
    base = {"connection_id": raw.connection_id, "event_id": raw.event_id}
    kind = ROUTE_KINDS.get(raw.route_key, EventKind.UNKNOWN)

    if kind is EventKind.CONNECT:
        return ConnectEvent(**base)
    if kind is EventKind.DISCONNECT:
        return DisconnectEvent(**base)
    if kind is EventKind.UNKNOWN:
        return UnknownEvent(route_key=raw.route_key, **base)

    if raw.body is None or not raw.body:
        raise MalformedRequestError("ask event has no body")
    try:
        body = AskBody.model_validate_json(raw.body)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "body" for err in exc.errors()})
        raise MalformedRequestError(f"invalid ask body: {', '.join(fields)}") from exc
    return AskEvent(token=body.token, prompt=body.data, **base)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class Session(BaseModel):
    connection_id: str
    downstream_session_id: str
    expires_at: float = 0.0  # epoch seconds, stamped by the store on put

    def is_live(self, now: float | None = None) -> bool:
        return self.expires_at > (time.time() if now is None else now)


# ---------------------------------------------------------------------------
# Component results
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """Outcome of ``TokenVerifier.authenticate``.

    ``failure`` is an internal diagnostic code and must never reach the
    client.
    """
    authorized: bool
    subject: str | None = None
    failure: str | None = None


class GenerationResult(BaseModel):
    answer: str
    session_id: str


# ---------------------------------------------------------------------------
# Outbound frames and transport acknowledgment
# ---------------------------------------------------------------------------

class FrameFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


class FrameType(str, Enum):
    ANSWER = "answer"
    ERROR = "error"
    END = "end"


class Frame(BaseModel):
    """Structured envelope used when ``FrameFormat.JSON`` is selected."""
    type: FrameType
    text: str | None = None


class Ack(BaseModel):
    """Fixed acknowledgment returned to the transport for every event."""
    status_code: int = 200
    headers: dict[str, str] = Field(default_factory=lambda: {"Access-Control-Allow-Origin": "*"})
    body: str = "{}"

    def to_lambda(self) -> dict[str, Any]:
        return {"statusCode": self.status_code, "headers": dict(self.headers), "body": self.body}
