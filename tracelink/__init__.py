"""tracelink: trace-context propagation, sampling and trace-correlated logging."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from tracelink.config import TracelinkConfig, load_config
from tracelink.context import (
    ExecutionContext,
    empty_context,
    extract,
    extract_context,
    get_span_context,
    inject,
    inject_context,
)
from tracelink.errors import ConfigurationError
from tracelink.exporter import ConsoleExporter, InMemoryExporter
from tracelink.log import CorrelatedLogger, configure_logging, with_trace
from tracelink.processors import DROP_POLICIES, BatchSpanProcessor, Sampler
from tracelink.tracer import Span, SpanContext, SpanStatus, Tracer, TracerProvider

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

_provider: Optional[TracerProvider] = None
_provider_lock = threading.Lock()


def init(
    config: Optional[TracelinkConfig] = None,
    *,
    config_file: Optional[str] = None,
    exporter: Any = None,
    setup_logging: bool = True,
) -> TracerProvider:
    """
    Configure tracing for the process and return the provider.

    Reads the sampling ratio once. Invalid configuration raises
    ConfigurationError here, at startup, never on the request path.

    Args:
        config: Ready configuration; loaded via ``load_config`` when None
        config_file: TOML file used when ``config`` is None
        exporter: Span consumer; defaults to ConsoleExporter when
            ``exporter.enable_console`` is set, otherwise spans are dropped
        setup_logging: Install the log sink described by ``config.logging``
    """
    global _provider

    if config is None:
        config = load_config(config_file=config_file)

    service_name = config.tracing.service_name
    if setup_logging:
        configure_logging(config.logging, service_name)

    provider = TracerProvider(
        resource={"service.name": service_name},
        sampler=Sampler(config.tracing.sample_rate),
    )
    if exporter is None and config.exporter.enable_console:
        exporter = ConsoleExporter(service_name=service_name)
    if exporter is not None:
        provider.add_span_processor(
            BatchSpanProcessor(
                exporter,
                max_queue_size=config.exporter.max_queue_size,
                max_export_batch_size=config.exporter.max_export_batch_size,
                schedule_delay_millis=config.exporter.schedule_delay_millis,
                drop_policy=DROP_POLICIES[config.exporter.drop_policy](),
            )
        )

    with _provider_lock:
        previous, _provider = _provider, provider
    if previous is not None:
        previous.shutdown()

    logger.debug(
        "Tracing initialized for %s (sample_rate=%s)", service_name, config.tracing.sample_rate
    )
    return provider


def get_tracer_provider() -> TracerProvider:
    """Return the configured provider, creating a default one if needed."""
    global _provider
    with _provider_lock:
        if _provider is None:
            # No exporter: spans are created and sampled but not exported.
            _provider = TracerProvider()
        return _provider


def get_tracer(name: str) -> Tracer:
    return get_tracer_provider().get_tracer(name)


def stop_tracing() -> None:
    """Flush and shut down the configured provider."""
    global _provider
    with _provider_lock:
        provider, _provider = _provider, None
    if provider is not None:
        provider.shutdown()


__all__ = [
    "__version__",
    "init",
    "get_tracer",
    "get_tracer_provider",
    "stop_tracing",
    "load_config",
    "TracelinkConfig",
    "ConfigurationError",
    "ExecutionContext",
    "empty_context",
    "get_span_context",
    "inject",
    "extract",
    "inject_context",
    "extract_context",
    "with_trace",
    "CorrelatedLogger",
    "configure_logging",
    "Span",
    "SpanContext",
    "SpanStatus",
    "Tracer",
    "TracerProvider",
    "Sampler",
    "BatchSpanProcessor",
    "ConsoleExporter",
    "InMemoryExporter",
]
