"""Span implementation: one timed unit of work within a trace."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from tracelink.tracer.span_context import SpanContext
from tracelink.utils.helpers import get_duration_ns

if TYPE_CHECKING:
    from tracelink.tracer.tracer import Tracer

logger = logging.getLogger(__name__)


class SpanStatus(Enum):
    UNSET = 0
    OK = 1
    ERROR = 2


class Span:
    """
    A single timed unit of work with parent/child linkage and attributes.

    A span is owned by the execution unit that started it. Once finished it
    is immutable: attribute, event and status writes are ignored.
    """

    def __init__(
        self,
        name: str,
        context: SpanContext,
        tracer: "Tracer",
        parent_span_id: Optional[str] = None,
        attributes: Optional[Dict[str, Any]] = None,
        start_time_ns: Optional[int] = None,
    ) -> None:
        """
        Initialize span.

        Args:
            name: Span name
            context: SpanContext of this span (its own span id)
            tracer: Tracer that started the span and will finish it
            parent_span_id: Parent span id (hex), None for a root span
            attributes: Initial attributes
            start_time_ns: Start timestamp, defaults to now
        """
        self.name = name
        self.context = context
        self.tracer = tracer
        self.parent_span_id = parent_span_id
        self.start_time_ns = start_time_ns if start_time_ns is not None else time.time_ns()
        self.end_time_ns: Optional[int] = None

        self.status = SpanStatus.UNSET
        self.status_description: Optional[str] = None

        self._attributes: Dict[str, Any] = dict(attributes or {})
        self._events: List[Dict[str, Any]] = []
        self._ended = False
        # Request-scoped PendingSpans registry, set by the tracer.
        self._pending = None

    @property
    def trace_id(self) -> str:
        return self.context.trace_id

    @property
    def span_id(self) -> str:
        return self.context.span_id

    @property
    def sampled(self) -> bool:
        return self.context.sampled

    @property
    def is_root(self) -> bool:
        return self.parent_span_id is None

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def attributes(self) -> Dict[str, Any]:
        """Get a copy of the span attributes."""
        return dict(self._attributes)

    @property
    def events(self) -> List[Dict[str, Any]]:
        """Get span events (read-only)."""
        return list(self._events)

    @property
    def duration_ns(self) -> Optional[int]:
        """Get span duration in nanoseconds."""
        return get_duration_ns(self.start_time_ns, self.end_time_ns)

    def set_attribute(self, key: str, value: Any) -> None:
        """Set an attribute on the span. Later writes to a key win."""
        if self._ended:
            logger.debug("Ignoring attribute %r on finished span %s", key, self.span_id)
            return
        self._attributes[key] = value

    def set_attributes(self, attributes: Dict[str, Any]) -> None:
        for key, value in attributes.items():
            self.set_attribute(key, value)

    def add_event(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
        timestamp_ns: Optional[int] = None,
    ) -> None:
        """Add an event to the span."""
        if self._ended:
            return
        self._events.append(
            {
                "name": name,
                "attributes": dict(attributes or {}),
                "timestamp_ns": timestamp_ns if timestamp_ns is not None else time.time_ns(),
            }
        )

    def record_exception(self, error: BaseException) -> None:
        """Record an exception event on the span."""
        if self._ended:
            return
        self.add_event(
            "exception",
            {
                "exception.type": type(error).__name__,
                "exception.message": str(error),
            },
        )
        self.set_status(SpanStatus.ERROR, str(error))

    def set_status(self, status: SpanStatus, description: Optional[str] = None) -> None:
        """Set the span status."""
        if self._ended:
            return
        self.status = status
        self.status_description = description

    def end(self) -> None:
        """End the span through its tracer."""
        self.tracer.finish_span(self)

    def _mark_finished(self, end_time_ns: int) -> None:
        # Called by Tracer.finish_span only.
        self.end_time_ns = max(end_time_ns, self.start_time_ns)
        if self.status == SpanStatus.UNSET:
            self.status = SpanStatus.OK
        self._ended = True

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view used by exporters."""
        return {
            "name": self.name,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "sampled": self.sampled,
            "start_time_ns": self.start_time_ns,
            "end_time_ns": self.end_time_ns,
            "duration_ns": self.duration_ns,
            "status": self.status.name,
            "status_description": self.status_description,
            "attributes": self.attributes,
            "events": self.events,
        }

    def __repr__(self) -> str:
        return (
            f"Span(name={self.name!r}, trace_id={self.trace_id}, "
            f"span_id={self.span_id}, parent_span_id={self.parent_span_id})"
        )

    # Context manager support
    def __enter__(self) -> "Span":
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        """Exit context manager."""
        if exc:
            self.record_exception(exc)
        if not self._ended:
            self.end()
        return False

    async def __aenter__(self) -> "Span":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        """Exit async context manager."""
        return self.__exit__(exc_type, exc, tb)
