"""Trace-correlated logging.

``with_trace(ctx)`` returns a ``logging.LoggerAdapter`` whose records always
carry ``trace_id`` and ``span_id`` (empty strings when the context has no
active span) plus caller-supplied structured fields in ``log_fields``. The
field names and encodings are the same whatever formatter the sink uses.

``configure_logging`` is the process-level sink setup: colored console lines
for development, JSON lines to dated files plus stdout otherwise. Rendering
goes through structlog's stdlib bridge (``ProcessorFormatter``), so records from
any stdlib logger get the same fields.
"""

from __future__ import annotations

import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

import structlog

from tracelink.context.context import ExecutionContext, get_span_context

if TYPE_CHECKING:
    from tracelink.config import LoggingConfig

TRACE_ID_FIELD = "trace_id"
SPAN_ID_FIELD = "span_id"
FIELDS_ATTR = "log_fields"

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed by configure_logging so reconfiguring replaces them.
_HANDLER_MARK = "_tracelink_handler"


class CorrelatedLogger(logging.LoggerAdapter):
    """
    Logger handle bound to one trace/span.

    Per-call ``extra=`` values are merged over the bound fields and end up in
    ``record.log_fields``; they cannot override ``trace_id`` or ``span_id``.
    """

    def __init__(
        self,
        logger: logging.Logger,
        trace_id: str = "",
        span_id: str = "",
        fields: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(logger, {TRACE_ID_FIELD: trace_id, SPAN_ID_FIELD: span_id})
        self.fields: Dict[str, Any] = dict(fields or {})

    @property
    def trace_id(self) -> str:
        return self.extra[TRACE_ID_FIELD]

    @property
    def span_id(self) -> str:
        return self.extra[SPAN_ID_FIELD]

    def bind(self, **fields: Any) -> "CorrelatedLogger":
        """Return a new handle with additional static fields."""
        return CorrelatedLogger(
            self.logger, self.trace_id, self.span_id, {**self.fields, **fields}
        )

    def process(self, msg, kwargs):
        call_fields = kwargs.pop("extra", None) or {}
        fields = {**self.fields, **call_fields}
        fields.pop(TRACE_ID_FIELD, None)
        fields.pop(SPAN_ID_FIELD, None)
        kwargs["extra"] = {
            TRACE_ID_FIELD: self.trace_id,
            SPAN_ID_FIELD: self.span_id,
            FIELDS_ATTR: fields,
        }
        return msg, kwargs


def with_trace(
    context: Optional[ExecutionContext],
    logger: Optional[logging.Logger] = None,
    **fields: Any,
) -> CorrelatedLogger:
    """
    Bind a logger to the trace and span ids active in ``context``.

    Args:
        context: Execution context; None or one without a span gives empty ids
        logger: Underlying logger, defaults to ``logging.getLogger("tracelink")``
        **fields: Static structured fields for every record
    """
    span_context = get_span_context(context) if context is not None else None
    trace_id = span_context.trace_id if span_context is not None else ""
    span_id = span_context.span_id if span_context is not None else ""
    return CorrelatedLogger(logger or logging.getLogger("tracelink"), trace_id, span_id, fields)


class TraceFieldsFilter(logging.Filter):
    """Make sure every record has trace_id, span_id and log_fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, TRACE_ID_FIELD):
            record.trace_id = ""
        if not hasattr(record, SPAN_ID_FIELD):
            record.span_id = ""
        if not isinstance(getattr(record, FIELDS_ATTR, None), dict):
            record.log_fields = {}
        return True


def add_trace_fields(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Structlog processor lifting trace ids and structured fields off the record.

    ``trace_id`` and ``span_id`` are always set (empty without a trace);
    caller fields never replace keys already in the event dict.
    """
    record = event_dict.get("_record")
    event_dict[TRACE_ID_FIELD] = getattr(record, TRACE_ID_FIELD, "") or ""
    event_dict[SPAN_ID_FIELD] = getattr(record, SPAN_ID_FIELD, "") or ""
    for key, value in (getattr(record, FIELDS_ATTR, None) or {}).items():
        event_dict.setdefault(key, value)
    return event_dict


def _pre_chain():
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=TIME_FORMAT, utc=False),
        add_trace_fields,
    ]


def console_formatter(colors: bool = True) -> structlog.stdlib.ProcessorFormatter:
    """Human-readable lines for development."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
    )


def json_formatter() -> structlog.stdlib.ProcessorFormatter:
    """One JSON object per record."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
    )


def _handler(handler: logging.Handler, formatter: logging.Formatter, level=logging.NOTSET):
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(TraceFieldsFilter())
    setattr(handler, _HANDLER_MARK, True)
    return handler


def configure_logging(
    config: "LoggingConfig",
    service_name: str,
    root: Optional[logging.Logger] = None,
) -> logging.Logger:
    """
    Install log handlers for the process and return the service logger.

    ``dev`` logs colored lines to stderr. Any other env writes JSON to
    ``<log_dir>/<service>-<date>.log`` and stdout. ERROR and above are also
    collected in ``<log_dir>/<service>-error-<date>.log``; failures of the
    logging machinery itself are reported on stderr by ``logging``.
    """
    root = root or logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARK, False):
            root.removeHandler(existing)
            existing.close()

    if config.env == "dev":
        handlers = [_handler(logging.StreamHandler(sys.stderr), console_formatter())]
    else:
        log_dir = Path(config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        today = date.today().isoformat()
        formatter = json_formatter()
        handlers = [
            _handler(logging.FileHandler(log_dir / f"{service_name}-{today}.log"), formatter),
            _handler(logging.StreamHandler(sys.stdout), formatter),
            _handler(
                logging.FileHandler(log_dir / f"{service_name}-error-{today}.log"),
                formatter,
                logging.ERROR,
            ),
        ]

    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(config.level)
    return logging.getLogger(service_name)
