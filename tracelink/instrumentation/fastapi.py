"""
FastAPI middleware for tracing HTTP requests and logging them with trace ids.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from tracelink.instrumentation.http_server import start_server_span
from tracelink.log import with_trace
from tracelink.tracer.span import SpanStatus
from tracelink.tracer.tracer import Tracer

TRACE_CONTEXT_STATE = "trace_context"


def install_http_middleware(
    app: Any,
    tracer: Tracer,
    *,
    server_name: str = "tracelink-server",
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Attach an HTTP middleware that wraps each FastAPI request in a server span.

    - Propagates incoming context from headers; broken headers start a new trace
    - Stores the request's execution context on ``request.state.trace_context``
    - Records method/path and response status code
    - Force-finishes spans left open by the handler, tagging them cancelled
    - Writes one access-log line per request carrying ``trace_id``
    """
    access_logger = logger or logging.getLogger("tracelink.access")

    @app.middleware("http")
    async def tracing_middleware(request, call_next: Callable[[Any], Awaitable[Any]]):  # type: ignore
        start = time.perf_counter()
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"
        client_ip = request.client.host if request.client else ""
        attrs = {
            "http.method": request.method,
            "http.target": path,
            "net.peer.ip": client_ip,
            "server.name": server_name,
            "span.kind": "server",
        }
        span, context = start_server_span(
            tracer, f"{request.method} {request.url.path}", request.headers, attributes=attrs
        )
        setattr(request.state, TRACE_CONTEXT_STATE, context)

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except asyncio.CancelledError:
            tracer.finish_pending(context, reason="cancelled")
            raise
        except Exception as exc:
            span.record_exception(exc)
            raise
        finally:
            if not span.ended:
                route = request.scope.get("route")
                if route is not None:
                    span.set_attribute("http.route", getattr(route, "path", ""))
                span.set_attribute("http.status_code", status_code)
                if status_code >= 500:
                    span.set_status(SpanStatus.ERROR, f"HTTP {status_code}")
                tracer.finish_pending(context, reason="request finished", exclude=span)
                tracer.finish_span(span)
            _log_request(
                with_trace(context, access_logger),
                request.method,
                path,
                status_code,
                time.perf_counter() - start,
                client_ip,
            )

    return None


def _log_request(logger, method: str, path: str, status: int, latency: float, client_ip: str) -> None:
    fields = {
        "method": method,
        "path": path,
        "status": status,
        "latency": f"{latency * 1000:.3f}ms",
        "client_ip": client_ip,
    }
    if status >= 500:
        logger.error("HTTP Request", extra=fields)
    elif status >= 400:
        logger.warning("HTTP Request", extra=fields)
    else:
        logger.info("HTTP Request", extra=fields)
