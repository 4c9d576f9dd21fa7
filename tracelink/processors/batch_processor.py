"""Batching span processor with bounded queue and background flush."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional

from tracelink.errors import ExportQueueFull
from tracelink.processors.drop_policy import DEFAULT_DROP_POLICY, DropPolicy
from tracelink.tracer.provider import SpanProcessor
from tracelink.tracer.span import Span

logger = logging.getLogger(__name__)


class BatchSpanProcessor(SpanProcessor):
    """
    Batch span processor that queues finished spans for export.

    The queue is multi-producer/single-consumer. Producers hold the lock only
    long enough to append, so the request path never waits on the exporter.
    When the queue is full the drop policy discards a span and
    ``dropped_spans`` is incremented.
    """

    def __init__(
        self,
        exporter=None,
        *,
        max_queue_size: int = 2048,
        max_export_batch_size: int = 512,
        schedule_delay_millis: int = 5000,
        drop_policy: Optional[DropPolicy] = None,
    ) -> None:
        self.exporter = exporter
        self.max_queue_size = max_queue_size
        self.max_export_batch_size = max_export_batch_size
        self.schedule_delay = schedule_delay_millis / 1000.0
        self.drop_policy = drop_policy or DEFAULT_DROP_POLICY

        self._queue: Deque[Span] = deque()
        self._lock = threading.Lock()
        self._export_lock = threading.Lock()
        self._event = threading.Event()
        self._shutdown = False

        self.dropped_spans = 0
        self.exported_spans = 0
        self._overflowing = False

        self._worker = threading.Thread(
            target=self._worker_loop, name="tracelink-batch-export", daemon=True
        )
        self._worker.start()

    def on_end(self, span: Span) -> None:
        """Queue a finished span. Never blocks on the consumer."""
        if self._shutdown:
            return

        with self._lock:
            enqueued = self.drop_policy.handle(self._queue, span, self.max_queue_size)
            if not enqueued:
                self.dropped_spans += 1
                first_drop = not self._overflowing
                self._overflowing = True
            else:
                first_drop = False
            batch_ready = len(self._queue) >= self.max_export_batch_size

        if first_drop:
            logger.warning(
                "%s",
                ExportQueueFull(
                    "Export queue full, dropping spans",
                    {"max_queue_size": self.max_queue_size, "span": span.name},
                ),
            )
        if batch_ready:
            self._event.set()

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "queued_spans": len(self._queue),
                "dropped_spans": self.dropped_spans,
                "exported_spans": self.exported_spans,
                "max_queue_size": self.max_queue_size,
            }

    def force_flush(self, timeout: Optional[float] = None) -> None:
        """Force flush any pending spans."""
        deadline = time.time() + timeout if timeout else None
        while True:
            flushed_any = self._flush_once()
            if not flushed_any:
                return
            if deadline and time.time() >= deadline:
                return

    def shutdown(self) -> None:
        """Shutdown the processor, exporting whatever is still queued."""
        if self._shutdown:
            return
        self._shutdown = True
        self._event.set()
        self._worker.join(timeout=max(self.schedule_delay * 2, 1.0))
        self.force_flush()
        shutdown = getattr(self.exporter, "shutdown", None)
        if shutdown is not None:
            try:
                shutdown()
            except Exception:
                logger.exception("Exporter shutdown failed")

    # Internal
    def _worker_loop(self) -> None:
        """Background worker that periodically flushes spans."""
        while not self._shutdown:
            self._event.wait(timeout=self.schedule_delay)
            self._event.clear()
            while self._flush_once():
                pass

    def _flush_once(self) -> bool:
        """Flush one batch of spans."""
        with self._export_lock:
            spans = self._drain_queue(self.max_export_batch_size)
            if not spans:
                return False
            self._export(spans)
            return True

    def _drain_queue(self, limit: int) -> List[Span]:
        """Drain spans from queue up to limit."""
        items: List[Span] = []
        with self._lock:
            while self._queue and len(items) < limit:
                items.append(self._queue.popleft())
            if not self._queue:
                self._overflowing = False
        return items

    def _export(self, spans: Iterable[Span]) -> None:
        """Export spans in the order they were queued."""
        if self.exporter is None:
            return

        spans = list(spans)
        try:
            self.exporter.export(spans)
        except Exception:
            # Export errors never reach the request path.
            logger.exception("Span export failed")
            return
        with self._lock:
            self.exported_spans += len(spans)
