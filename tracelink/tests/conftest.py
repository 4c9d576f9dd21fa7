"""Shared fixtures: a provider wired to an in-memory exporter."""

import pytest

from tracelink.exporter import InMemoryExporter
from tracelink.processors import BatchSpanProcessor, Sampler
from tracelink.tracer import TracerProvider


class Tracing:
    """Provider + batch processor + in-memory exporter for one test."""

    def __init__(self, sample_rate: float = 1.0, **processor_kwargs) -> None:
        processor_kwargs.setdefault("schedule_delay_millis", 60_000)
        self.exporter = InMemoryExporter()
        self.processor = BatchSpanProcessor(self.exporter, **processor_kwargs)
        self.provider = TracerProvider(
            resource={"service.name": "test-service"},
            sampler=Sampler(sample_rate),
        )
        self.provider.add_span_processor(self.processor)
        self.tracer = self.provider.get_tracer("test")

    def finished_spans(self):
        self.provider.force_flush()
        return self.exporter.get_finished_spans()

    def spans_by_name(self):
        return {span.name: span for span in self.finished_spans()}


@pytest.fixture
def make_tracing():
    created = []

    def factory(sample_rate: float = 1.0, **processor_kwargs) -> Tracing:
        tracing = Tracing(sample_rate, **processor_kwargs)
        created.append(tracing)
        return tracing

    yield factory
    for tracing in created:
        tracing.provider.shutdown()


@pytest.fixture
def tracing(make_tracing):
    return make_tracing()
