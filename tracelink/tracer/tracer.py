"""Tracer: starts spans on an explicit execution context and finishes them."""

from __future__ import annotations

import logging
import time
import warnings
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

from tracelink.context.context import (
    ExecutionContext,
    get_pending_spans,
    get_span,
    get_span_context,
    set_span,
)
from tracelink.errors import DoubleFinish
from tracelink.tracer.span import Span
from tracelink.tracer.span_context import SpanContext
from tracelink.utils.helpers import format_span_id, format_trace_id, new_span_id, new_trace_id

if TYPE_CHECKING:
    from tracelink.tracer.provider import TracerProvider

logger = logging.getLogger(__name__)


class Tracer:
    """
    Factory for spans.

    There is no implicit "current span": the caller passes the execution
    context in and threads the returned one through its call graph,
    including across thread and task boundaries.
    """

    def __init__(self, provider: "TracerProvider", instrumentation_scope: str):
        """
        Initialize tracer.

        Args:
            provider: TracerProvider that owns sampler and processors
            instrumentation_scope: Instrumentation scope name
        """
        self._provider = provider
        self.instrumentation_scope = instrumentation_scope

    @property
    def provider(self) -> "TracerProvider":
        return self._provider

    def start_span(
        self,
        context: ExecutionContext,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Span, ExecutionContext]:
        """
        Start a new span under ``context``.

        Without an active SpanContext a new trace is minted and the sampler
        decides; otherwise the span is a child that inherits trace id and
        sampled flag unchanged.

        Args:
            context: Execution context of the caller
            name: Span name
            attributes: Optional attributes dictionary

        Returns:
            The started span and a new execution context with it active.
            ``context`` itself is not modified.
        """
        parent = get_span_context(context)
        if parent is not None and not parent.is_valid():
            parent = None

        start_time_ns = time.time_ns()
        if parent is None:
            trace_id = new_trace_id()
            decision = self._provider.sampler.should_sample(trace_id)
            trace_id_hex = format_trace_id(trace_id)
            parent_span_id = None
            trace_state = None
        else:
            decision = self._provider.sampler.should_sample(parent.trace_id, parent=parent)
            trace_id_hex = parent.trace_id
            parent_span_id = parent.span_id
            trace_state = parent.trace_state
            local_parent = get_span(context)
            if local_parent is not None and start_time_ns < local_parent.start_time_ns:
                start_time_ns = local_parent.start_time_ns

        span_context = SpanContext(
            trace_id=trace_id_hex,
            span_id=format_span_id(new_span_id()),
            trace_flags=1 if decision.sampled else 0,
            trace_state=trace_state,
            is_remote=False,
        )
        span = Span(
            name=name,
            context=span_context,
            tracer=self,
            parent_span_id=parent_span_id,
            attributes=attributes,
            start_time_ns=start_time_ns,
        )

        pending = get_pending_spans(context)
        if pending is not None:
            pending.add(span)
        span._pending = pending

        return span, set_span(context, span)

    def finish_span(self, span: Span) -> None:
        """
        Stamp the end time and hand a sampled span to the export pipeline.

        Finishing a span twice emits a DoubleFinish warning and does nothing.
        """
        if span.ended:
            warnings.warn(
                f"span {span.name!r} ({span.span_id}) already finished",
                DoubleFinish,
                stacklevel=2,
            )
            return

        span._mark_finished(time.time_ns())

        pending = span._pending
        if pending is not None:
            pending.discard(span)

        if span.sampled:
            self._provider.on_end(span)

    def finish_pending(
        self,
        context: ExecutionContext,
        reason: str = "cancelled",
        exclude: Optional[Span] = None,
    ) -> int:
        """
        Force-finish every open span on ``context``'s request path.

        Spans are finished newest first and tagged ``cancelled=True`` with
        ``cancel.reason``. Returns how many spans were finished.
        """
        pending = get_pending_spans(context)
        if pending is None:
            return 0
        spans = pending.drain(exclude=exclude)
        for span in spans:
            if span.ended:
                continue
            span.set_attribute("cancelled", True)
            span.set_attribute("cancel.reason", reason)
            self.finish_span(span)
        if spans:
            logger.debug("Force-finished %d open span(s): %s", len(spans), reason)
        return len(spans)
