"""Queue overflow handling strategies for span buffering."""

from typing import Deque

from tracelink.tracer.span import Span


class DropPolicy:
    """Base policy deciding how to handle span queue overflow."""

    def handle(self, queue: Deque[Span], span: Span, max_size: int) -> bool:
        """
        Apply the drop policy.

        Returns True if ``span`` was enqueued without losing another span,
        False if a span (the incoming one or an older one) was dropped.
        """
        raise NotImplementedError


class DropOldestPolicy(DropPolicy):
    """Drop the oldest span to make room for a new one."""

    def handle(self, queue: Deque[Span], span: Span, max_size: int) -> bool:
        if max_size <= 0:
            return False
        dropped = False
        while len(queue) >= max_size:
            queue.popleft()
            dropped = True
        queue.append(span)
        return not dropped


class DropNewestPolicy(DropPolicy):
    """Drop the incoming span if the queue is full."""

    def handle(self, queue: Deque[Span], span: Span, max_size: int) -> bool:
        if len(queue) < max_size:
            queue.append(span)
            return True
        return False


DEFAULT_DROP_POLICY = DropNewestPolicy()

DROP_POLICIES = {
    "newest": DropNewestPolicy,
    "oldest": DropOldestPolicy,
}
