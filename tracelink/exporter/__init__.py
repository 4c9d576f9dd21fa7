"""Exporters for delivering finished spans."""

from tracelink.exporter.console_exporter import ConsoleExporter
from tracelink.exporter.memory_exporter import InMemoryExporter

__all__ = ["ConsoleExporter", "InMemoryExporter"]
