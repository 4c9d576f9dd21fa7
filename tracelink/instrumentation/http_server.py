"""HTTP server helpers for extracting context and creating server spans."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from tracelink.context import (
    ExecutionContext,
    extract_context,
    get_span_context,
    with_pending_spans,
)
from tracelink.tracer.span import Span
from tracelink.tracer.tracer import Tracer


def start_server_span(
    tracer: Tracer,
    name: str,
    headers: Mapping[str, str],
    attributes: Optional[Dict[str, Any]] = None,
) -> Tuple[Span, ExecutionContext]:
    """
    Start the server span for one inbound request.

    A missing or malformed trace header starts a new root trace. The returned
    context carries a fresh pending-span registry so that
    ``tracer.finish_pending`` can close everything left open at teardown.
    """
    context = with_pending_spans(extract_context(headers))
    remote_parent = get_span_context(context)
    span, context = tracer.start_span(context, name, attributes)
    span.set_attribute("span.remote_parent", remote_parent is not None)
    return span, context
