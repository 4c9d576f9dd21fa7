"""Immutable trace metadata."""

from dataclasses import dataclass
from typing import Optional

SAMPLED_FLAG = 0x01


@dataclass(frozen=True)
class SpanContext:
    trace_id: str
    span_id: str
    trace_flags: int = 0  # bit 0 set = sampled
    trace_state: Optional[str] = None
    is_remote: bool = False

    @property
    def sampled(self) -> bool:
        return bool(self.trace_flags & SAMPLED_FLAG)

    def is_valid(self) -> bool:
        return bool(
            self.trace_id
            and self.span_id
            and self.trace_id.strip("0")
            and self.span_id.strip("0")
        )
