"""MessageRouter — per-event dispatcher for the chat relay."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from chat_relay.relay.errors import (
    DeliveryError,
    GenerationError,
    MalformedRequestError,
    PersistenceError,
    StaleConnectionError,
)
from chat_relay.relay.generation import GenerationInvoker
from chat_relay.relay.models import (
    Ack,
    AskEvent,
    FrameFormat,
    Session,
    TransportEvent,
    UnknownEvent,
    parse_event,
)
from chat_relay.relay.pusher import ConnectionPusher, FrameCodec
from chat_relay.relay.session import SessionStore
from chat_relay.tracing.interface import NullTraceCollector, TraceCollector

if TYPE_CHECKING:
    from chat_relay.auth.verifier import TokenVerifier

logger = logging.getLogger(__name__)


class MessageRouter:
    """Public API: ``ack = await router.handle(transport_event)``.

    Every event is a self-contained transaction. The connection id and the
    prompt travel only as arguments of the current call chain; nothing about
    an event is kept on the router once ``handle`` returns.
    """

    def __init__(
        self,
        verifier: TokenVerifier,
        session_store: SessionStore,
        invoker: GenerationInvoker,
        pusher: ConnectionPusher,
        trace_collector: TraceCollector | None = None,
        frame_format: FrameFormat = FrameFormat.TEXT,
    ) -> None:
        self._verifier = verifier
        self._sessions = session_store
        self._invoker = invoker
        self._pusher = pusher
        self._trace = trace_collector or NullTraceCollector()
        self._codec = FrameCodec(frame_format)

    # ------------------------------------------------------------------
    # Public handle
    # ------------------------------------------------------------------

    async def handle(self, raw: TransportEvent) -> Ack:
        trace_id = raw.event_id
        t_start = time.time()
        try:
            await self._dispatch(raw)
        except Exception:
            logger.exception("Unhandled error event=%s connection=%s", trace_id, raw.connection_id)
            await self._trace.emit(trace_id, "error", {"stage": "unhandled"})
        finally:
            await self._trace.emit(trace_id, "handle_done", {
                "total_latency_ms": round((time.time() - t_start) * 1000, 2),
            })
            await self._trace.flush(trace_id)
        return Ack()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    async def _dispatch(self, raw: TransportEvent) -> None:
        try:
            event = parse_event(raw)
        except MalformedRequestError as exc:
            logger.warning("Malformed request event=%s connection=%s: %s", raw.event_id, raw.connection_id, exc)
            await self._trace.emit(raw.event_id, "error", {"stage": "parse", "error": str(exc)})
            await self._notify_error(raw.connection_id, "Malformed request.")
            return

        await self._trace.emit(event.event_id, "route", {
            "kind": event.kind.value,
            "route_key": raw.route_key,
            "connection_id": event.connection_id,
        })

        if isinstance(event, AskEvent):
            await self._ask(event)
        elif isinstance(event, UnknownEvent):
            logger.info("Ignoring route %r connection=%s", event.route_key, event.connection_id)
        else:
            logger.info("%s connection=%s", event.kind.value, event.connection_id)

    # ------------------------------------------------------------------
    # Ask pipeline
    # ------------------------------------------------------------------

    async def _ask(self, event: AskEvent) -> None:
        connection_id = event.connection_id
        trace_id = event.event_id

        # 1. Authenticate ----------------------------------------------
        auth = await self._verifier.authenticate(event.token)
        await self._trace.emit(trace_id, "auth", {"authorized": auth.authorized, "failure": auth.failure})
        if not auth.authorized:
            logger.info("Unauthorized ask dropped connection=%s", connection_id)
            return

        # 2. Prior session ---------------------------------------------
        prior = await self._load_session(connection_id, trace_id)
        prior_id = prior.downstream_session_id if prior else None

        # 3. Generate --------------------------------------------------
        t_gen = time.time()
        try:
            result = await self._invoker.invoke(event.prompt, prior_id)
        except GenerationError as exc:
            logger.error("Generation failed connection=%s: %s", connection_id, exc)
            await self._trace.emit(trace_id, "error", {"stage": "generation", "error": str(exc)})
            await self._notify_error(connection_id, "The answer could not be generated.")
            return
        await self._trace.emit(trace_id, "generation", {
            "latency_ms": round((time.time() - t_gen) * 1000, 2),
            "resumed": prior_id is not None,
            "session_changed": prior_id is not None and prior_id != result.session_id,
            "answer_chars": len(result.answer),
        })

        # 4. Deliver ---------------------------------------------------
        try:
            await self._deliver(connection_id, result.answer)
            await self._trace.emit(trace_id, "delivery", {"status": "ok"})
        except StaleConnectionError as exc:
            # Keep the backend session even though nobody is listening.
            logger.warning("Connection gone before delivery connection=%s: %s", connection_id, exc)
            await self._trace.emit(trace_id, "delivery", {"status": "stale"})
        except DeliveryError as exc:
            logger.error("Delivery failed connection=%s: %s", connection_id, exc)
            await self._trace.emit(trace_id, "delivery", {"status": "error", "error": str(exc)})
            return

        # 5. Persist ---------------------------------------------------
        await self._persist(
            Session(connection_id=connection_id, downstream_session_id=result.session_id),
            trace_id,
        )

    async def _deliver(self, connection_id: str, answer: str) -> None:
        if answer:
            await self._pusher.push(connection_id, self._codec.answer(answer))
        await self._pusher.push_end(connection_id, self._codec.end())

    async def _notify_error(self, connection_id: str, message: str) -> None:
        payload = self._codec.error(message)
        if payload is None:
            return
        try:
            await self._pusher.push(connection_id, payload)
            await self._pusher.push_end(connection_id, self._codec.end())
        except DeliveryError as exc:
            logger.warning("Error frame not delivered connection=%s: %s", connection_id, exc)

    async def _load_session(self, connection_id: str, trace_id: str) -> Session | None:
        try:
            session = await self._sessions.get(connection_id)
        except PersistenceError as exc:
            logger.warning("Session read failed, starting fresh connection=%s: %s", connection_id, exc)
            await self._trace.emit(trace_id, "session_read", {"status": "error", "error": str(exc)})
            return None
        await self._trace.emit(trace_id, "session_read", {"status": "hit" if session else "miss"})
        return session

    async def _persist(self, session: Session, trace_id: str) -> None:
        try:
            await self._sessions.put(session)
        except PersistenceError as exc:
            logger.error("Session write failed connection=%s: %s", session.connection_id, exc)
            await self._trace.emit(trace_id, "session_write", {"status": "error", "error": str(exc)})
            return
        await self._trace.emit(trace_id, "session_write", {"status": "ok", "expires_at": session.expires_at})
