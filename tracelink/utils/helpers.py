"""Identifier generation and hex encoding for trace and span ids."""

from __future__ import annotations

import secrets
from typing import Optional

from tracelink.errors import MalformedIdentifier

TRACE_ID_HEX_LENGTH = 32
SPAN_ID_HEX_LENGTH = 16

_HEX_DIGITS = frozenset("0123456789abcdef")


def new_trace_id() -> int:
    """
    Generate a random 128-bit trace id.

    Uses the OS CSPRNG through ``secrets``; the all-zero id is invalid on the
    wire and is never returned.
    """
    while True:
        trace_id = secrets.randbits(128)
        if trace_id:
            return trace_id


def new_span_id() -> int:
    """Generate a random, non-zero 64-bit span id."""
    while True:
        span_id = secrets.randbits(64)
        if span_id:
            return span_id


def format_trace_id(trace_id: int) -> str:
    """
    Format a trace_id to a hex string.

    Args:
        trace_id: 128-bit trace id

    Returns:
        32-character lowercase hex string
    """
    return format(trace_id, '032x')


def format_span_id(span_id: int) -> str:
    """
    Format a span_id to a hex string.

    Args:
        span_id: 64-bit span id

    Returns:
        16-character lowercase hex string
    """
    return format(span_id, '016x')


def _parse_hex(hex_string: str, length: int, kind: str) -> int:
    if not isinstance(hex_string, str) or len(hex_string) != length:
        raise MalformedIdentifier(
            f"{kind} must be {length} hex characters",
            {"value": hex_string},
        )
    if not _HEX_DIGITS.issuperset(hex_string):
        raise MalformedIdentifier(
            f"{kind} must be lowercase hexadecimal",
            {"value": hex_string},
        )
    value = int(hex_string, 16)
    if value == 0:
        raise MalformedIdentifier(f"{kind} must not be all zeros", {"value": hex_string})
    return value


def parse_trace_id(hex_string: str) -> int:
    """
    Parse a hex string trace_id.

    Raises:
        MalformedIdentifier: wrong length, non-hex characters or all zeros
    """
    return _parse_hex(hex_string, TRACE_ID_HEX_LENGTH, "trace_id")


def parse_span_id(hex_string: str) -> int:
    """
    Parse a hex string span_id.

    Raises:
        MalformedIdentifier: wrong length, non-hex characters or all zeros
    """
    return _parse_hex(hex_string, SPAN_ID_HEX_LENGTH, "span_id")


def get_duration_ns(start_time_ns: int, end_time_ns: Optional[int]) -> Optional[int]:
    """Return the elapsed nanoseconds, or None if the span hasn't ended."""
    if end_time_ns is None:
        return None
    return end_time_ns - start_time_ns
