"""Explicit execution-context helpers built on OpenTelemetry's Context.

An execution context is an immutable ``opentelemetry.context.Context``. Every
helper here takes the context as an argument and returns a new one; none of
them touch OpenTelemetry's implicit "current" context, so concurrent units of
work can fan out from one parent context without sharing mutable state.
"""

from __future__ import annotations

import threading
from typing import List, Optional, TYPE_CHECKING

from opentelemetry.context import Context, create_key, get_value, set_value

if TYPE_CHECKING:
    from tracelink.tracer.span import Span
    from tracelink.tracer.span_context import SpanContext

ExecutionContext = Context

_SPAN_CONTEXT_KEY = create_key("tracelink-span-context")
_SPAN_KEY = create_key("tracelink-span")
_PENDING_SPANS_KEY = create_key("tracelink-pending-spans")


class PendingSpans:
    """
    Registry of spans started on one request's execution path but not finished.

    Shared by every context derived from the request's root context, so the
    request-handling layer can force-finish whatever is still open during
    teardown.
    """

    def __init__(self) -> None:
        self._spans: List["Span"] = []
        self._lock = threading.Lock()

    def add(self, span: "Span") -> None:
        with self._lock:
            self._spans.append(span)

    def discard(self, span: "Span") -> None:
        with self._lock:
            try:
                self._spans.remove(span)
            except ValueError:
                pass

    def drain(self, exclude: Optional["Span"] = None) -> List["Span"]:
        """Remove and return open spans, newest first."""
        with self._lock:
            drained = [s for s in reversed(self._spans) if s is not exclude]
            self._spans = [s for s in self._spans if s is exclude]
        return drained

    def __len__(self) -> int:
        with self._lock:
            return len(self._spans)


def empty_context() -> ExecutionContext:
    """Return a context with no active span."""
    return Context()


def get_span_context(context: ExecutionContext) -> Optional[SpanContext]:
    """Return the active SpanContext of ``context``, if any."""
    return get_value(_SPAN_CONTEXT_KEY, context=context)


def set_span_context(context: ExecutionContext, span_context: SpanContext) -> ExecutionContext:
    """
    Return a new context whose active SpanContext is ``span_context``.

    Used for contexts reconstructed from a carrier; any local span bound to
    ``context`` is cleared.
    """
    context = set_value(_SPAN_KEY, None, context=context)
    return set_value(_SPAN_CONTEXT_KEY, span_context, context=context)


def get_span(context: ExecutionContext) -> Optional["Span"]:
    """Return the local span bound to ``context``, if any."""
    return get_value(_SPAN_KEY, context=context)


def set_span(context: ExecutionContext, span: "Span") -> ExecutionContext:
    """Return a new context with ``span`` (and its SpanContext) active."""
    context = set_value(_SPAN_KEY, span, context=context)
    return set_value(_SPAN_CONTEXT_KEY, span.context, context=context)


def get_pending_spans(context: ExecutionContext) -> Optional[PendingSpans]:
    return get_value(_PENDING_SPANS_KEY, context=context)


def with_pending_spans(
    context: ExecutionContext,
    registry: Optional[PendingSpans] = None,
) -> ExecutionContext:
    """Attach a pending-span registry for one request's execution path."""
    if registry is None:
        registry = PendingSpans()
    return set_value(_PENDING_SPANS_KEY, registry, context=context)
