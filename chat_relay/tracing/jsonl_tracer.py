"""JSONL file-based trace collector."""

from __future__ import annotations

import json
import logging
import time
from collections import deque
from pathlib import Path
from typing import Any

from chat_relay.tracing.interface import TraceCollector

logger = logging.getLogger(__name__)


class JSONLTraceCollector(TraceCollector):
    """Writes diagnostics to ``{trace_dir}/{event_id}.jsonl``.

    Records are buffered per event and written when ``MessageRouter.handle``
    finishes that event, whatever its outcome. With ``max_files`` set, the
    directory keeps only that many trace files; the oldest are removed
    first (files already present at start-up count, ordered by mtime).
    """

    def __init__(self, trace_dir: str = "./traces", max_files: int | None = None) -> None:
        self._dir = Path(trace_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._max_files = max_files if max_files and max_files > 0 else None
        self._buffers: dict[str, list[dict[str, Any]]] = {}
        existing = sorted(self._dir.glob("*.jsonl"), key=lambda p: p.stat().st_mtime)
        self._written: deque[Path] = deque(existing)

    @property
    def trace_dir(self) -> Path:
        return self._dir

    def __len__(self) -> int:
        return len(self._written)

    async def emit(self, trace_id: str, event_type: str, data: dict[str, Any]) -> None:
        self._buffers.setdefault(trace_id, []).append({
            "ts": time.time(),
            "trace_id": trace_id,
            "event": event_type,
            **data,
        })

    async def flush(self, trace_id: str) -> None:
        entries = self._buffers.pop(trace_id, [])
        if not entries:
            return
        path = self._dir / f"{trace_id}.jsonl"
        is_new = not path.exists()
        with open(path, "a") as f:
            f.writelines(json.dumps(entry, default=str) + "\n" for entry in entries)
        if is_new:
            self._written.append(path)
            self._rotate()

    def _rotate(self) -> None:
        if self._max_files is None:
            return
        while len(self._written) > self._max_files:
            oldest = self._written.popleft()
            try:
                oldest.unlink()
            except FileNotFoundError:
                logger.debug("Trace file already gone: %s", oldest)

    def read(self, trace_id: str) -> list[dict[str, Any]]:
        """Load the flushed records of one event (empty if none were written)."""
        path = self._dir / f"{trace_id}.jsonl"
        if not path.exists():
            return []
        with open(path) as f:
            return [json.loads(line) for line in f if line.strip()]
