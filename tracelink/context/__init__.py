"""Execution context and propagation utilities."""

from tracelink.context.context import (
    ExecutionContext,
    PendingSpans,
    empty_context,
    get_pending_spans,
    get_span,
    get_span_context,
    set_span,
    set_span_context,
    with_pending_spans,
)
from tracelink.context.propagators import (
    BAGGAGE_HEADER,
    TRACEPARENT_HEADER,
    TRACESTATE_HEADER,
    extract,
    extract_context,
    format_traceparent,
    format_tracestate,
    inject,
    inject_context,
    parse_traceparent,
    parse_tracestate,
)

__all__ = [
    "ExecutionContext",
    "PendingSpans",
    "empty_context",
    "get_span_context",
    "set_span_context",
    "get_span",
    "set_span",
    "get_pending_spans",
    "with_pending_spans",
    "TRACEPARENT_HEADER",
    "TRACESTATE_HEADER",
    "BAGGAGE_HEADER",
    "format_traceparent",
    "parse_traceparent",
    "format_tracestate",
    "parse_tracestate",
    "inject",
    "extract",
    "inject_context",
    "extract_context",
]
