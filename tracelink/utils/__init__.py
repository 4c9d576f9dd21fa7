"""Utility functions for tracelink."""

from tracelink.utils.helpers import (
    SPAN_ID_HEX_LENGTH,
    TRACE_ID_HEX_LENGTH,
    format_span_id,
    format_trace_id,
    get_duration_ns,
    new_span_id,
    new_trace_id,
    parse_span_id,
    parse_trace_id,
)

__all__ = [
    "TRACE_ID_HEX_LENGTH",
    "SPAN_ID_HEX_LENGTH",
    "new_trace_id",
    "new_span_id",
    "get_duration_ns",
    "format_trace_id",
    "format_span_id",
    "parse_trace_id",
    "parse_span_id",
]
