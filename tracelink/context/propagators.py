"""W3C trace context and baggage propagation using OpenTelemetry's propagators."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, MutableMapping, Optional

from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.propagators.textmap import Getter, default_setter
from opentelemetry.trace import NonRecordingSpan
from opentelemetry.trace import SpanContext as OTelSpanContext, TraceFlags, TraceState
from opentelemetry.trace import get_current_span, set_span_in_context
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from tracelink.context.context import (
    ExecutionContext,
    empty_context,
    get_span_context,
    set_span_context,
)
from tracelink.errors import MalformedIdentifier
from tracelink.tracer.span_context import SpanContext
from tracelink.utils.helpers import format_trace_id, format_span_id, parse_trace_id, parse_span_id

logger = logging.getLogger(__name__)

TRACEPARENT_HEADER = "traceparent"
TRACESTATE_HEADER = "tracestate"
BAGGAGE_HEADER = "baggage"

_propagator = TraceContextTextMapPropagator()
_baggage_propagator = W3CBaggagePropagator()


class CaseInsensitiveGetter(Getter[Mapping[str, str]]):
    """Header lookup that ignores header-name case."""

    def get(self, carrier: Mapping[str, str], key: str) -> Optional[List[str]]:
        if not carrier:
            return None
        wanted = key.lower()
        for name, value in carrier.items():
            if name.lower() == wanted:
                if isinstance(value, (list, tuple)):
                    return list(value)
                return [value]
        return None

    def keys(self, carrier: Mapping[str, str]) -> List[str]:
        return list(carrier.keys()) if carrier else []


_getter = CaseInsensitiveGetter()


def format_tracestate(state: Dict[str, str]) -> str:
    """
    Format tracestate header value from a dict.

    Formats according to W3C Trace Context standard.
    """
    if not state:
        return ""

    items = []
    for k, v in state.items():
        key = str(k).strip().lower()[:256]
        value = str(v).strip().replace(",", "_").replace("=", "_")[:256]
        if key and value:
            items.append(f"{key}={value}")

    return ",".join(items)


def parse_tracestate(header_value: str) -> Dict[str, str]:
    """
    Parse a tracestate header into a dict.

    Parses W3C Trace Context tracestate format: key1=value1,key2=value2
    """
    if not header_value:
        return {}

    result = {}
    for item in header_value.split(","):
        item = item.strip()
        if not item or "=" not in item:
            continue
        key, value = item.split("=", 1)
        key = key.strip().lower()
        value = value.strip()
        if key and value:
            result[key] = value

    return result


def format_traceparent(context: SpanContext) -> str:
    """
    Format traceparent header value: ``{version}-{trace-id}-{span-id}-{flags}``.

    Returns an empty string if the context carries malformed identifiers.
    """
    carrier: Dict[str, str] = {}
    inject(context, carrier)
    return carrier.get(TRACEPARENT_HEADER, "")


def parse_traceparent(header_value: str) -> Optional[SpanContext]:
    """Parse a traceparent header value into a remote SpanContext."""
    if not header_value:
        return None
    return extract({TRACEPARENT_HEADER: header_value})


def inject(context: SpanContext, carrier: MutableMapping[str, str]) -> None:
    """
    Write ``traceparent`` (and ``tracestate`` when set) into the carrier.

    A context with malformed identifiers is logged and nothing is written;
    the outbound call then simply starts a fresh trace downstream.
    """
    try:
        otel_context = _to_otel_context(context)
    except MalformedIdentifier as exc:
        logger.debug("Not injecting trace context: %s", exc)
        return

    ctx = set_span_in_context(NonRecordingSpan(otel_context), empty_context())
    _propagator.inject(carrier, context=ctx, setter=default_setter)


def extract(carrier: Mapping[str, str]) -> Optional[SpanContext]:
    """
    Extract a remote SpanContext from the carrier.

    Returns None when the header is absent or fails validation; callers fall
    back to starting a new root trace. Unknown versions are parsed by their
    fixed-position fields.
    """
    if not carrier:
        return None
    ctx = _propagator.extract(carrier, context=empty_context(), getter=_getter)
    otel_context = get_current_span(ctx).get_span_context()
    if not otel_context.is_valid:
        header = _getter.get(carrier, TRACEPARENT_HEADER)
        if header:
            logger.debug("Ignoring malformed traceparent header: %r", header[0])
        return None
    return _from_otel_context(otel_context)


def inject_context(context: ExecutionContext, carrier: MutableMapping[str, str]) -> None:
    """Inject the active SpanContext and any baggage of ``context``."""
    span_context = get_span_context(context)
    if span_context is not None:
        inject(span_context, carrier)
    _baggage_propagator.inject(carrier, context=context, setter=default_setter)


def extract_context(
    carrier: Mapping[str, str],
    context: Optional[ExecutionContext] = None,
) -> ExecutionContext:
    """
    Build an execution context from an inbound carrier.

    Baggage is restored when present. The result has no active SpanContext
    if the trace header was missing or malformed.
    """
    base = context if context is not None else empty_context()
    ctx = _baggage_propagator.extract(carrier or {}, context=base, getter=_getter)
    span_context = extract(carrier)
    if span_context is not None:
        ctx = set_span_context(ctx, span_context)
    return ctx


def _to_otel_context(context: SpanContext) -> OTelSpanContext:
    trace_state = TraceState()
    if context.trace_state:
        parsed = parse_tracestate(context.trace_state)
        if parsed:
            trace_state = TraceState(list(parsed.items()))

    return OTelSpanContext(
        trace_id=parse_trace_id(context.trace_id),
        span_id=parse_span_id(context.span_id),
        is_remote=context.is_remote,
        trace_flags=TraceFlags(TraceFlags.SAMPLED if context.sampled else TraceFlags.DEFAULT),
        trace_state=trace_state,
    )


def _from_otel_context(otel_context: OTelSpanContext) -> SpanContext:
    trace_state = None
    if otel_context.trace_state:
        trace_state = format_tracestate(dict(otel_context.trace_state.items())) or None

    return SpanContext(
        trace_id=format_trace_id(otel_context.trace_id),
        span_id=format_span_id(otel_context.span_id),
        trace_flags=1 if otel_context.trace_flags.sampled else 0,
        trace_state=trace_state,
        is_remote=True,
    )
