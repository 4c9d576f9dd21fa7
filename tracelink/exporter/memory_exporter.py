"""In-memory exporter, mostly for tests and local inspection."""

from __future__ import annotations

import threading
from typing import Iterable, List

from tracelink.tracer.span import Span


class InMemoryExporter:
    """Collects exported spans in finish order."""

    def __init__(self) -> None:
        self._spans: List[Span] = []
        self._lock = threading.Lock()
        self._stopped = False

    def export(self, spans: Iterable[Span]) -> bool:
        if self._stopped:
            return False
        with self._lock:
            self._spans.extend(spans)
        return True

    def get_finished_spans(self) -> List[Span]:
        with self._lock:
            return list(self._spans)

    def clear(self) -> None:
        with self._lock:
            self._spans.clear()

    def shutdown(self) -> None:
        self._stopped = True
