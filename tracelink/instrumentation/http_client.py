"""HTTP client helpers: header injection and traced downstream calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional

import requests

from tracelink.context import ExecutionContext, inject_context
from tracelink.errors import DownstreamCallFailure
from tracelink.tracer.span import SpanStatus
from tracelink.tracer.tracer import Tracer


def inject_headers(context: ExecutionContext, headers: MutableMapping[str, str]) -> MutableMapping[str, str]:
    """
    Inject traceparent/tracestate/baggage for ``context`` into ``headers``.

    Returns the same headers mapping for convenience.
    """
    inject_context(context, headers)
    return headers


@dataclass
class DownstreamResult:
    status_code: Optional[int]
    text: str = ""
    error: Optional[DownstreamCallFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def call_downstream(
    tracer: Tracer,
    context: ExecutionContext,
    method: str,
    url: str,
    *,
    session: Any = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 10.0,
    span_name: Optional[str] = None,
) -> DownstreamResult:
    """
    Issue an outbound request wrapped in a client span.

    The client span is a child of the caller's active span and its context is
    what gets injected, so the downstream server span's parent is this client
    span. Transport errors and non-success statuses are recorded on the span
    and returned in ``result.error``; they are never raised and never change
    the sampling decision.

    Args:
        tracer: Tracer to start the client span with
        context: Caller's execution context
        method: HTTP method
        url: Target URL
        session: ``requests``-compatible object with ``request()``; defaults
            to a new ``requests.Session``
        headers: Extra outbound headers
        timeout: Request timeout in seconds
        span_name: Defaults to ``"HTTP <METHOD>"``
    """
    method = method.upper()
    span, call_context = tracer.start_span(
        context,
        span_name or f"HTTP {method}",
        {"http.method": method, "http.url": url, "span.kind": "client"},
    )
    outbound = dict(headers or {})
    inject_headers(call_context, outbound)

    owns_session = session is None
    if owns_session:
        session = requests.Session()

    try:
        response = session.request(method, url, headers=outbound, timeout=timeout)
    except requests.RequestException as exc:
        failure = DownstreamCallFailure(
            "Downstream call failed", {"url": url, "error": exc}, cause=exc
        )
        span.set_attribute("error", True)
        span.set_attribute("error.message", str(exc))
        span.record_exception(exc)
        tracer.finish_span(span)
        return DownstreamResult(status_code=None, error=failure)
    finally:
        if owns_session:
            session.close()

    status_code = response.status_code
    span.set_attribute("http.status_code", status_code)
    result = DownstreamResult(status_code=status_code, text=response.text)
    if status_code >= 400:
        result.error = DownstreamCallFailure(
            "Downstream call returned an error status",
            {"url": url, "status_code": status_code},
            status_code=status_code,
        )
        span.set_attribute("error", True)
        span.set_attribute("error.message", f"HTTP {status_code}")
        span.set_status(SpanStatus.ERROR, f"HTTP {status_code}")
    tracer.finish_span(span)
    return result
