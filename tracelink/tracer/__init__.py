"""Tracer components."""

from tracelink.tracer.provider import SpanProcessor, TracerProvider
from tracelink.tracer.span import Span, SpanStatus
from tracelink.tracer.span_context import SpanContext
from tracelink.tracer.tracer import Tracer

__all__ = [
    "Span",
    "SpanStatus",
    "SpanContext",
    "Tracer",
    "TracerProvider",
    "SpanProcessor",
]
