"""AWS Lambda adapter for an API Gateway WebSocket API — translation only."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
from typing import Any

from chat_relay import create_router
from chat_relay.config import Settings, configure_logging, load_settings
from chat_relay.relay.models import Ack, TransportEvent
from chat_relay.relay.pusher import ApiGatewayPusher
from chat_relay.relay.router import MessageRouter

logger = logging.getLogger(__name__)

# Wiring only, reused by warm invocations; no per-event state lives here.
_routers: dict[str, MessageRouter] = {}
_loop: asyncio.AbstractEventLoop | None = None


def management_endpoint(event: dict[str, Any], configured: str = "") -> str:
    """Return the management API URL, derived from the request when not configured."""
    if configured:
        return configured
    ctx = event.get("requestContext", {})
    return f"https://{ctx['domainName']}/{ctx['stage']}"


def to_transport_event(event: dict[str, Any]) -> TransportEvent:
    ctx = event.get("requestContext", {})
    kwargs: dict[str, Any] = {
        "connection_id": ctx["connectionId"],
        "route_key": ctx.get("routeKey", "$default"),
        "body": event.get("body"),
    }
    if ctx.get("requestId"):
        kwargs["event_id"] = ctx["requestId"]
    return TransportEvent(**kwargs)


def _lambda_settings() -> Settings:
    """Settings for the Lambda runtime: trace through logging unless TRACE_BACKEND is set."""
    settings = load_settings()
    if "TRACE_BACKEND" not in os.environ:
        # /var/task is read-only; /tmp is size-limited
        settings = dataclasses.replace(settings, trace_backend="log")
    return settings


def _router_for(endpoint: str) -> MessageRouter:
    router = _routers.get(endpoint)
    if router is None:
        settings = _lambda_settings()
        router = create_router(
            ApiGatewayPusher(endpoint, region=settings.aws_region),
            settings=settings,
        )
        _routers[endpoint] = router
    return router


def _event_loop() -> asyncio.AbstractEventLoop:
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop


def handler(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    """Lambda entry point: always returns the fixed 200 acknowledgment."""
    try:
        settings = load_settings()
    except ValueError:
        configure_logging()
        logger.exception("Invalid configuration; event dropped")
        return Ack().to_lambda()
    configure_logging(settings.log_level)

    try:
        raw = to_transport_event(event)
        router = _router_for(management_endpoint(event, settings.api_gw_endpoint))
    except KeyError as exc:
        logger.error("Event without %s in requestContext; ignoring", exc)
        return Ack().to_lambda()
    except Exception:
        logger.exception("Router wiring failed; event dropped")
        return Ack().to_lambda()

    logger.info("event=%s route=%s connection=%s", raw.event_id, raw.route_key, raw.connection_id)
    ack = _event_loop().run_until_complete(router.handle(raw))
    return ack.to_lambda()
