"""HTTP instrumentation helpers."""

from tracelink.instrumentation.http_client import (
    DownstreamResult,
    call_downstream,
    inject_headers as inject_http_headers,
)
from tracelink.instrumentation.http_server import start_server_span
from tracelink.instrumentation.fastapi import TRACE_CONTEXT_STATE, install_http_middleware

__all__ = [
    "inject_http_headers",
    "call_downstream",
    "DownstreamResult",
    "start_server_span",
    "install_http_middleware",
    "TRACE_CONTEXT_STATE",
]
