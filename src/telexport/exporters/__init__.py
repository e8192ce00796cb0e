"""Exporter implementations for telexport."""

from telexport.exporters.base import NOOP_EXPORTER, Exporter, NoopExporter, TerminalExporter
from telexport.exporters.in_memory import InMemoryExporter
from telexport.exporters.nonblocking import NonBlockingExporter

__all__ = [
    "Exporter",
    "InMemoryExporter",
    "NOOP_EXPORTER",
    "NonBlockingExporter",
    "NoopExporter",
    "OpenTelemetrySpanExporter",
    "RouterSpanExporter",
    "TerminalExporter",
]


def __getattr__(name: str):
    if name in {"OpenTelemetrySpanExporter", "RouterSpanExporter"}:
        from telexport.exporters import otel

        return getattr(otel, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
