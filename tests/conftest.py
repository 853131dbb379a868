"""Shared fixtures for chat_relay tests."""

from __future__ import annotations

import json
import time

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from chat_relay.auth.keys import StaticKeyResolver
from chat_relay.auth.verifier import TokenVerifier
from chat_relay.config import Settings
from chat_relay.relay.models import FrameFormat, TransportEvent
from chat_relay.relay.pusher import RecordingPusher
from chat_relay.relay.router import MessageRouter
from chat_relay.relay.session import InMemorySessionStore
from chat_relay.tracing.jsonl_tracer import JSONLTraceCollector

ISSUER = "https://idp.example.test/pool-1"
AUDIENCE = "relay-web-client"
KID = "key-1"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def foreign_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_token(signing_key):
    """Build an RS256 token; claim overrides set to ``None`` are dropped."""

    def _make(kid: str | None = KID, key=None, **overrides) -> str:
        now = int(time.time())
        claims = {"sub": "user-1", "iss": ISSUER, "aud": AUDIENCE, "iat": now, "exp": now + 300}
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        headers = {"kid": kid} if kid is not None else None
        return jwt.encode(claims, key or signing_key, algorithm="RS256", headers=headers)

    return _make


@pytest.fixture
def key_resolver(signing_key):
    return StaticKeyResolver({KID: signing_key.public_key()})


@pytest.fixture
def verifier(key_resolver):
    return TokenVerifier(key_resolver, issuer=ISSUER, audience=AUDIENCE)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_store(clock):
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def pusher():
    return RecordingPusher()


@pytest.fixture
def trace_collector(tmp_path):
    return JSONLTraceCollector(trace_dir=str(tmp_path / "traces"))


@pytest.fixture
def make_router(verifier, session_store, pusher, trace_collector):
    def _make(invoker, frame_format: FrameFormat = FrameFormat.TEXT, store=None) -> MessageRouter:
        return MessageRouter(
            verifier=verifier,
            session_store=store or session_store,
            invoker=invoker,
            pusher=pusher,
            trace_collector=trace_collector,
            frame_format=frame_format,
        )

    return _make


@pytest.fixture
def ask_event():
    def _make(connection_id: str, token: str, prompt: str) -> TransportEvent:
        body = json.dumps({"action": "ask", "token": token, "data": prompt})
        return TransportEvent(connection_id=connection_id, route_key="ask", body=body)

    return _make


@pytest.fixture
def relay_settings(tmp_path):
    return Settings(issuer=ISSUER, audience=AUDIENCE, trace_dir=str(tmp_path / "traces"))
