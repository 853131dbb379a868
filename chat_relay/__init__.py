"""chat_relay — connection-scoped session router for a RAG chat relay.

Usage::

    from chat_relay import create_router
    from chat_relay.relay import RecordingPusher, TransportEvent

    router = create_router(RecordingPusher())
    ack = await router.handle(TransportEvent(connection_id="abc", route_key="$connect"))
"""

from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()  # reads .env into os.environ (no-op if file missing)

from chat_relay.auth.keys import JWKSKeyResolver, KeyResolver
from chat_relay.auth.verifier import TokenVerifier
from chat_relay.config import Settings, load_settings
from chat_relay.relay.generation import (
    BedrockGenerationInvoker,
    DemoGenerationInvoker,
    GenerationInvoker,
    OpenAIGenerationInvoker,
)
from chat_relay.relay.models import Ack, FrameFormat, TransportEvent
from chat_relay.relay.pusher import ConnectionPusher
from chat_relay.relay.router import MessageRouter
from chat_relay.relay.session import DynamoDBSessionStore, InMemorySessionStore, SessionStore
from chat_relay.tracing.interface import NullTraceCollector, TraceCollector
from chat_relay.tracing.jsonl_tracer import JSONLTraceCollector
from chat_relay.tracing.log_tracer import LoggingTraceCollector

__all__ = [
    "Ack",
    "MessageRouter",
    "Settings",
    "TransportEvent",
    "create_router",
    "load_settings",
]


def _build_session_store(settings: Settings) -> SessionStore:
    if settings.session_backend == "dynamodb":
        return DynamoDBSessionStore(
            table_name=settings.session_table,
            ttl_s=settings.session_ttl_s,
            region=settings.aws_region,
        )
    return InMemorySessionStore(ttl_s=settings.session_ttl_s)


def _build_invoker(settings: Settings) -> GenerationInvoker:
    if settings.generation_backend == "bedrock":
        return BedrockGenerationInvoker(
            knowledge_base_id=settings.knowledge_base_id,
            model_identifier=settings.model_identifier,
            region=settings.aws_region,
        )
    if settings.generation_backend == "openai":
        return OpenAIGenerationInvoker(
            knowledge_base_id=settings.knowledge_base_id,
            api_key=settings.openai_api_key,
            model=settings.openai_model,
        )
    return DemoGenerationInvoker()


def _build_trace_collector(settings: Settings) -> TraceCollector:
    if settings.trace_backend == "log":
        return LoggingTraceCollector()
    if settings.trace_backend == "none":
        return NullTraceCollector()
    return JSONLTraceCollector(settings.trace_dir, max_files=settings.trace_max_files)


def create_router(
    pusher: ConnectionPusher,
    *,
    settings: Settings | None = None,
    key_resolver: KeyResolver | None = None,
    session_store: SessionStore | None = None,
    invoker: GenerationInvoker | None = None,
    trace_collector: TraceCollector | None = None,
) -> MessageRouter:
    """Wire all components and return a ready-to-use MessageRouter.

    Every component not passed explicitly is built from *settings*
    (``load_settings()`` when omitted). The pusher always comes from the
    caller because it belongs to the transport adapter.
    """
    settings = settings or load_settings()

    resolver = key_resolver or JWKSKeyResolver(
        settings.jwks_uri,
        cache_ttl_s=settings.jwks_cache_ttl_s,
        miss_limit=settings.jwks_miss_limit,
        miss_window_s=settings.jwks_miss_window_s,
        global_miss_limit=settings.jwks_global_miss_limit,
    )
    verifier = TokenVerifier(
        resolver,
        issuer=settings.issuer,
        audience=settings.audience,
        algorithms=settings.jwt_algorithms,
    )

    return MessageRouter(
        verifier=verifier,
        session_store=session_store or _build_session_store(settings),
        invoker=invoker or _build_invoker(settings),
        pusher=pusher,
        trace_collector=trace_collector or _build_trace_collector(settings),
        frame_format=FrameFormat(settings.frame_format),
    )
