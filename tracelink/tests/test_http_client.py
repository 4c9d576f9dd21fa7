"""Tests for outbound call instrumentation."""

import requests

from tracelink.context import empty_context, extract
from tracelink.errors import DownstreamCallFailure
from tracelink.instrumentation import call_downstream, inject_http_headers
from tracelink.tracer import SpanStatus


class FakeResponse:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def request(self, method, url, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def test_inject_headers_uses_active_span(tracing):
    span, ctx = tracing.tracer.start_span(empty_context(), "caller")
    headers = inject_http_headers(ctx, {"accept": "text/plain"})
    assert headers["accept"] == "text/plain"
    assert headers["traceparent"] == f"00-{span.trace_id}-{span.span_id}-01"


def test_client_span_is_injected_and_finished(tracing):
    parent, ctx = tracing.tracer.start_span(empty_context(), "getUser")
    session = FakeSession(FakeResponse(200, "Service B processed successfully"))

    result = call_downstream(
        tracing.tracer, ctx, "get", "http://localhost:8081/info", session=session, timeout=2.0
    )
    parent.end()

    assert result.ok
    assert result.status_code == 200
    assert result.text == "Service B processed successfully"

    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["timeout"] == 2.0
    sent = extract(call["headers"])

    client = tracing.spans_by_name()["HTTP GET"]
    assert sent.trace_id == parent.trace_id
    assert sent.span_id == client.span_id
    assert client.parent_span_id == parent.span_id
    assert client.attributes["http.status_code"] == 200
    assert client.attributes["span.kind"] == "client"
    assert client.status == SpanStatus.OK


def test_unsampled_trace_still_propagates(make_tracing):
    tracing = make_tracing(sample_rate=0.0)
    _, ctx = tracing.tracer.start_span(empty_context(), "caller")
    session = FakeSession()

    call_downstream(tracing.tracer, ctx, "GET", "http://b/info", session=session)

    assert session.calls[0]["headers"]["traceparent"].endswith("-00")
    assert tracing.finished_spans() == []


def test_transport_error_is_recorded_not_raised(tracing):
    _, ctx = tracing.tracer.start_span(empty_context(), "caller")
    session = FakeSession(error=requests.ConnectionError("connection refused"))

    result = call_downstream(tracing.tracer, ctx, "GET", "http://b/info", session=session)

    assert not result.ok
    assert result.status_code is None
    assert isinstance(result.error, DownstreamCallFailure)
    assert isinstance(result.error.cause, requests.ConnectionError)

    client = tracing.spans_by_name()["HTTP GET"]
    assert client.ended
    assert client.attributes["error"] is True
    assert "connection refused" in client.attributes["error.message"]
    assert client.status == SpanStatus.ERROR
    assert client.events[0]["name"] == "exception"


def test_error_status_is_recorded_on_span(tracing):
    _, ctx = tracing.tracer.start_span(empty_context(), "caller")
    session = FakeSession(FakeResponse(503, "unavailable"))

    result = call_downstream(tracing.tracer, ctx, "GET", "http://b/info", session=session)

    assert result.status_code == 503
    assert result.error.status_code == 503

    client = tracing.spans_by_name()["HTTP GET"]
    assert client.attributes["http.status_code"] == 503
    assert client.attributes["error.message"] == "HTTP 503"
    assert client.status == SpanStatus.ERROR


def test_custom_span_name_and_headers(tracing):
    _, ctx = tracing.tracer.start_span(empty_context(), "caller")
    session = FakeSession()

    call_downstream(
        tracing.tracer,
        ctx,
        "POST",
        "http://b/items",
        session=session,
        headers={"x-request-id": "r1"},
        span_name="create item",
    )

    assert session.calls[0]["headers"]["x-request-id"] == "r1"
    assert "create item" in tracing.spans_by_name()
