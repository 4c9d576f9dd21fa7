"""TracerProvider: owns the sampler, span processors and tracers."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, TYPE_CHECKING

from opentelemetry.sdk.resources import Resource

if TYPE_CHECKING:
    from tracelink.processors.sampler import Sampler
    from tracelink.tracer.span import Span
    from tracelink.tracer.tracer import Tracer

logger = logging.getLogger(__name__)


class SpanProcessor:
    """
    Base span processor interface.

    ``on_end`` receives finished, sampled spans only. It runs on the request
    path and must not block.
    """

    def on_end(self, span: "Span") -> None:
        """
        Called when a sampled span finishes.

        Args:
            span: finished Span (immutable)
        """
        pass

    def shutdown(self) -> None:
        """Shutdown the processor."""
        pass

    def force_flush(self, timeout: Optional[float] = None) -> None:
        """Force flush any pending spans."""
        pass


class TracerProvider:
    """
    Factory for tracers sharing one sampler and one processor pipeline.

    The sampler is fixed at construction; its ratio is configuration read once
    at process start.
    """

    def __init__(
        self,
        resource: Optional[Dict[str, str]] = None,
        sampler: Optional["Sampler"] = None,
    ) -> None:
        """
        Initialize TracerProvider.

        Args:
            resource: Resource attributes (e.g. ``service.name``)
            sampler: Root-trace sampler, defaults to the 1% ratio sampler
        """
        self.resource = Resource.create(resource or {})
        if sampler is None:
            from tracelink.processors.sampler import Sampler
            sampler = Sampler()
        self.sampler = sampler

        self._processors: List[SpanProcessor] = []
        self._tracers: Dict[str, "Tracer"] = {}
        self._lock = threading.Lock()
        self._shutdown = False

    @property
    def service_name(self) -> str:
        return str(self.resource.attributes.get("service.name", ""))

    @property
    def processors(self) -> List[SpanProcessor]:
        return list(self._processors)

    def get_tracer(self, name: str) -> "Tracer":
        """
        Get a tracer by name.

        Args:
            name: Instrumentation scope name
        """
        with self._lock:
            tracer = self._tracers.get(name)
            if tracer is None:
                from tracelink.tracer.tracer import Tracer
                tracer = Tracer(self, name)
                self._tracers[name] = tracer
            return tracer

    def add_span_processor(self, processor: SpanProcessor) -> None:
        with self._lock:
            self._processors = self._processors + [processor]

    def on_end(self, span: "Span") -> None:
        """Fan a finished, sampled span out to every processor."""
        if self._shutdown:
            return
        for processor in self._processors:
            try:
                processor.on_end(span)
            except Exception:
                # Processors must not break the request path.
                logger.exception("Span processor %r failed", processor)

    def force_flush(self, timeout: Optional[float] = None) -> None:
        """Force flush all processors."""
        for processor in self._processors:
            try:
                processor.force_flush(timeout=timeout)
            except Exception:
                logger.exception("Flushing span processor %r failed", processor)

    def shutdown(self) -> None:
        """Shutdown the provider and all processors."""
        if self._shutdown:
            return
        self._shutdown = True
        for processor in self._processors:
            try:
                processor.shutdown()
            except Exception:
                logger.exception("Shutting down span processor %r failed", processor)
