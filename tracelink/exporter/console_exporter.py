"""Console exporter for developer visibility."""

from __future__ import annotations

import json
import sys
from typing import Iterable

from tracelink.tracer.span import Span


class ConsoleExporter:
    """Exporter that pretty-prints spans as JSON to stdout (or provided stream)."""

    def __init__(self, stream=None, service_name: str = "", pretty: bool = True) -> None:
        self.stream = stream or sys.stdout
        self.service_name = service_name
        self.indent = 2 if pretty else None

    def export(self, spans: Iterable[Span]) -> bool:
        for span in spans:
            record = span.to_dict()
            if self.service_name:
                record["service.name"] = self.service_name
            print(json.dumps(record, indent=self.indent, default=str), file=self.stream)
        self.stream.flush()
        return True

    def shutdown(self) -> None:
        return None
