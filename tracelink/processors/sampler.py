"""Sampling decisions for traces."""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Optional, Union

from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from tracelink.errors import ConfigurationError
from tracelink.tracer.span_context import SpanContext
from tracelink.utils.helpers import parse_trace_id

DEFAULT_SAMPLE_RATE = 0.01


@dataclass
class SamplingResult:
    sampled: bool
    inherited: bool = False


class Sampler:
    """
    Parent-based, trace-id-ratio sampler.

    Root decisions map the trace id's low 64 bits into [0, 1) and compare
    against the ratio, so any service holding the same trace id reaches the
    same answer. Non-root spans inherit the parent's sampled flag as is.
    """

    def __init__(self, sample_rate: float = DEFAULT_SAMPLE_RATE) -> None:
        if isinstance(sample_rate, bool) or not isinstance(sample_rate, numbers.Real):
            raise ConfigurationError(
                "sample_rate must be a number", {"sample_rate": sample_rate}
            )
        if not 0.0 <= sample_rate <= 1.0:
            raise ConfigurationError(
                "sample_rate must be between 0.0 and 1.0", {"sample_rate": sample_rate}
            )
        self.sample_rate = float(sample_rate)
        self._ratio = TraceIdRatioBased(self.sample_rate)

    def decide(self, trace_id: Union[int, str]) -> bool:
        """Root decision for ``trace_id`` (int or 32-char hex)."""
        if isinstance(trace_id, str):
            trace_id = parse_trace_id(trace_id)
        result = self._ratio.should_sample(None, trace_id, "root")
        return result.decision.is_sampled()

    def should_sample(
        self,
        trace_id: Union[int, str],
        parent: Optional[SpanContext] = None,
    ) -> SamplingResult:
        if parent is not None:
            return SamplingResult(sampled=parent.sampled, inherited=True)
        return SamplingResult(sampled=self.decide(trace_id))

    def __repr__(self) -> str:
        return f"Sampler(sample_rate={self.sample_rate})"
