"""Tests for span lifecycle, parent/child linkage and context threading."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from tracelink.context import (
    PendingSpans,
    empty_context,
    get_pending_spans,
    get_span,
    get_span_context,
    set_span_context,
    with_pending_spans,
)
from tracelink.errors import DoubleFinish
from tracelink.tracer import SpanContext, SpanProcessor, SpanStatus

REMOTE_TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
REMOTE_SPAN_ID = "00f067aa0ba902b7"


def remote_context(sampled: bool):
    sc = SpanContext(
        trace_id=REMOTE_TRACE_ID,
        span_id=REMOTE_SPAN_ID,
        trace_flags=1 if sampled else 0,
        is_remote=True,
    )
    return set_span_context(empty_context(), sc)


class TestStartSpan:
    def test_root_span_without_context(self, tracing):
        span, ctx = tracing.tracer.start_span(empty_context(), "root", {"k": "v"})
        assert span.is_root
        assert span.parent_span_id is None
        assert len(span.trace_id) == 32
        assert len(span.span_id) == 16
        assert span.sampled is True
        assert span.attributes == {"k": "v"}
        assert get_span_context(ctx) == span.context
        assert get_span(ctx) is span

    def test_input_context_is_not_modified(self, tracing):
        parent_ctx = empty_context()
        _, child_ctx = tracing.tracer.start_span(parent_ctx, "root")
        assert get_span_context(parent_ctx) is None
        assert child_ctx is not parent_ctx

    def test_child_inherits_trace_and_links_parent(self, tracing):
        root, ctx = tracing.tracer.start_span(empty_context(), "root")
        child, child_ctx = tracing.tracer.start_span(ctx, "child")
        grandchild, _ = tracing.tracer.start_span(child_ctx, "grandchild")

        assert child.trace_id == root.trace_id == grandchild.trace_id
        assert child.parent_span_id == root.span_id
        assert grandchild.parent_span_id == child.span_id
        assert len({root.span_id, child.span_id, grandchild.span_id}) == 3
        # ctx still points at the root after deriving children from it.
        assert get_span(ctx) is root

    def test_child_start_is_not_before_parent_start(self, tracing):
        root, ctx = tracing.tracer.start_span(empty_context(), "root")
        root.start_time_ns += 10_000_000_000  # parent clock ahead of ours
        child, _ = tracing.tracer.start_span(ctx, "child")
        assert child.start_time_ns >= root.start_time_ns

    def test_remote_parent_decision_is_inherited(self, make_tracing):
        never = make_tracing(sample_rate=0.0)
        span, _ = never.tracer.start_span(remote_context(sampled=True), "server")
        assert span.trace_id == REMOTE_TRACE_ID
        assert span.parent_span_id == REMOTE_SPAN_ID
        assert span.sampled is True

        always = make_tracing(sample_rate=1.0)
        span, _ = always.tracer.start_span(remote_context(sampled=False), "server")
        assert span.sampled is False

    def test_ratio_zero_samples_nothing_in_any_trace(self, make_tracing):
        tracing = make_tracing(sample_rate=0.0)
        for _ in range(50):
            root, ctx = tracing.tracer.start_span(empty_context(), "root")
            child, _ = tracing.tracer.start_span(ctx, "child")
            assert not root.sampled and not child.sampled
            child.end()
            root.end()
        assert tracing.finished_spans() == []

    def test_ratio_one_samples_every_span(self, tracing):
        for _ in range(20):
            root, ctx = tracing.tracer.start_span(empty_context(), "root")
            child, _ = tracing.tracer.start_span(ctx, "child")
            child.end()
            root.end()
        spans = tracing.finished_spans()
        assert len(spans) == 40
        assert all(span.sampled for span in spans)


class TestFinishSpan:
    def test_finish_exports_sampled_span_once(self, tracing):
        span, _ = tracing.tracer.start_span(empty_context(), "work")
        tracing.tracer.finish_span(span)
        assert span.ended
        assert span.end_time_ns >= span.start_time_ns
        assert span.status == SpanStatus.OK
        assert tracing.finished_spans() == [span]

    def test_double_finish_warns_and_is_noop(self, tracing):
        span, _ = tracing.tracer.start_span(empty_context(), "work")
        span.end()
        end_time = span.end_time_ns
        with pytest.warns(DoubleFinish):
            tracing.tracer.finish_span(span)
        assert span.end_time_ns == end_time
        assert tracing.finished_spans() == [span]

    def test_finished_span_is_immutable(self, tracing):
        span, _ = tracing.tracer.start_span(empty_context(), "work")
        span.set_attribute("key", "first")
        span.set_attribute("key", "second")
        span.end()
        span.set_attribute("key", "third")
        span.set_status(SpanStatus.ERROR, "late")
        span.add_event("late")
        assert span.attributes == {"key": "second"}
        assert span.status == SpanStatus.OK
        assert span.events == []

    def test_context_manager_records_exception_and_finishes(self, tracing):
        span, _ = tracing.tracer.start_span(empty_context(), "work")
        with pytest.raises(ValueError):
            with span:
                raise ValueError("boom")
        assert span.ended
        assert span.status == SpanStatus.ERROR
        assert span.status_description == "boom"
        assert span.events[0]["attributes"]["exception.type"] == "ValueError"

    def test_context_manager_after_explicit_end_does_not_warn(self, tracing, recwarn):
        span, _ = tracing.tracer.start_span(empty_context(), "work")
        with span:
            span.end()
        assert not [w for w in recwarn if issubclass(w.category, DoubleFinish)]

    def test_processor_failure_does_not_reach_caller(self, tracing, caplog):
        class Broken(SpanProcessor):
            def on_end(self, span):
                raise RuntimeError("processor down")

        tracing.provider.add_span_processor(Broken())
        span, _ = tracing.tracer.start_span(empty_context(), "work")
        span.end()
        assert "processor down" in caplog.text
        assert tracing.finished_spans() == [span]


class TestPendingSpans:
    def test_finish_pending_closes_open_spans_newest_first(self, tracing):
        ctx = with_pending_spans(empty_context())
        root, root_ctx = tracing.tracer.start_span(ctx, "request")
        child, child_ctx = tracing.tracer.start_span(root_ctx, "db")
        done, _ = tracing.tracer.start_span(child_ctx, "done")
        done.end()

        finished = tracing.tracer.finish_pending(child_ctx, reason="cancelled")

        assert finished == 2
        assert root.ended and child.ended
        assert child.attributes["cancelled"] is True
        assert root.attributes["cancel.reason"] == "cancelled"
        assert "cancelled" not in done.attributes
        assert [s.name for s in tracing.finished_spans()] == ["done", "db", "request"]
        assert len(get_pending_spans(ctx)) == 0

    def test_finish_pending_can_keep_one_span_open(self, tracing):
        ctx = with_pending_spans(empty_context())
        server, server_ctx = tracing.tracer.start_span(ctx, "server")
        leftover, _ = tracing.tracer.start_span(server_ctx, "leftover")

        tracing.tracer.finish_pending(server_ctx, reason="teardown", exclude=server)

        assert leftover.ended
        assert not server.ended
        server.end()
        assert "cancelled" not in server.attributes

    def test_finish_pending_without_registry_is_noop(self, tracing):
        span, ctx = tracing.tracer.start_span(empty_context(), "work")
        assert tracing.tracer.finish_pending(ctx) == 0
        assert not span.ended

    def test_caller_supplied_empty_registry_is_kept(self, tracing):
        registry = PendingSpans()
        ctx = with_pending_spans(empty_context(), registry)
        assert get_pending_spans(ctx) is registry

        span, _ = tracing.tracer.start_span(ctx, "tracked")
        assert len(registry) == 1

        assert tracing.tracer.finish_pending(ctx, reason="teardown") == 1
        assert span.ended
        assert span.attributes["cancel.reason"] == "teardown"
        assert len(registry) == 0


class TestConcurrentFanOut:
    def test_threads_derive_children_from_one_parent(self, tracing):
        root, ctx = tracing.tracer.start_span(empty_context(), "fan-out")

        def work(i):
            child, child_ctx = tracing.tracer.start_span(ctx, f"part-{i}")
            grandchild, _ = tracing.tracer.start_span(child_ctx, f"sub-{i}")
            grandchild.end()
            child.end()
            return child, grandchild

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(work, range(32)))
        root.end()

        children = [c for c, _ in results]
        assert {c.parent_span_id for c in children} == {root.span_id}
        assert all(g.parent_span_id == c.span_id for c, g in results)
        assert len({c.span_id for c in children}) == 32
        assert get_span(ctx) is root
        assert len(tracing.finished_spans()) == 65

    def test_asyncio_tasks_derive_children_from_one_parent(self, tracing):
        root, ctx = tracing.tracer.start_span(empty_context(), "fan-out")

        async def work(i):
            child, _ = tracing.tracer.start_span(ctx, f"task-{i}")
            await asyncio.sleep(0)
            child.end()
            return child

        async def main():
            return await asyncio.gather(*(work(i) for i in range(10)))

        children = asyncio.run(main())
        root.end()
        assert all(c.parent_span_id == root.span_id for c in children)
        assert all(c.trace_id == root.trace_id for c in children)
