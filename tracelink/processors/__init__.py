"""Span processors and supporting utilities."""

from tracelink.processors.batch_processor import BatchSpanProcessor
from tracelink.processors.drop_policy import (
    DEFAULT_DROP_POLICY,
    DROP_POLICIES,
    DropNewestPolicy,
    DropOldestPolicy,
    DropPolicy,
)
from tracelink.processors.sampler import DEFAULT_SAMPLE_RATE, Sampler, SamplingResult

__all__ = [
    "BatchSpanProcessor",
    "DropPolicy",
    "DropOldestPolicy",
    "DropNewestPolicy",
    "DEFAULT_DROP_POLICY",
    "DROP_POLICIES",
    "DEFAULT_SAMPLE_RATE",
    "Sampler",
    "SamplingResult",
]
