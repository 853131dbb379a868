"""TraceCollector ABC — the internal diagnostic channel, no internal deps."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class TraceCollector(ABC):
    """Collects per-event diagnostic records.

    Carries details that must stay server-side, such as why a token was
    rejected.
    """

    @abstractmethod
    async def emit(self, trace_id: str, event_type: str, data: dict[str, Any]) -> None: ...

    @abstractmethod
    async def flush(self, trace_id: str) -> None: ...


class NullTraceCollector(TraceCollector):
    async def emit(self, trace_id: str, event_type: str, data: dict[str, Any]) -> None:
        return None

    async def flush(self, trace_id: str) -> None:
        return None
