"""Trace collector that writes through ``logging`` instead of files."""

from __future__ import annotations

import json
import logging
from typing import Any

from chat_relay.tracing.interface import TraceCollector

TRACE_LOGGER = "chat_relay.trace"


class LoggingTraceCollector(TraceCollector):
    """One JSON log line per record, emitted when the event is flushed.

    Suited to hosts with a read-only or size-limited filesystem, where the
    log stream is already collected (e.g. CloudWatch on Lambda).
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._logger = logger or logging.getLogger(TRACE_LOGGER)
        self._level = level
        self._buffers: dict[str, list[dict[str, Any]]] = {}

    async def emit(self, trace_id: str, event_type: str, data: dict[str, Any]) -> None:
        self._buffers.setdefault(trace_id, []).append({"trace_id": trace_id, "event": event_type, **data})

    async def flush(self, trace_id: str) -> None:
        for entry in self._buffers.pop(trace_id, []):
            self._logger.log(self._level, json.dumps(entry, default=str))
