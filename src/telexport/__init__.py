"""telexport: composable, shutdown-safe exporters for telemetry records.

Records are dispatched through a router to the exporters registered for
their data type:

    import telexport
    from telexport.exporters import InMemoryExporter

    telexport.configure({telexport.DataType.SPAN: InMemoryExporter()})
    telexport.dispatch(span)
    telexport.shutdown(timeout=5.0)
"""

from __future__ import annotations

from telexport.api import configure, dispatch, get_router, is_configured, shutdown
from telexport.composite import CompositeExporter
from telexport.exceptions import (
    ConfigurationError,
    RegistrationError,
    ShutdownError,
    ShutdownTimeoutError,
    TelexportError,
)
from telexport.exporters.base import NOOP_EXPORTER, Exporter, NoopExporter
from telexport.exporters.nonblocking import NonBlockingExporter
from telexport.records import Batch, DataType, Measure, Record, Span, SpanEvent
from telexport.router import NOOP_ROUTER, NoopRouter, Registration, Router
from telexport.transformers import AttributeLimiter, Batcher, RecordFilter, Transformer

__version__ = "0.1.0"

__all__ = [
    "AttributeLimiter",
    "Batch",
    "Batcher",
    "CompositeExporter",
    "ConfigurationError",
    "DataType",
    "Exporter",
    "Measure",
    "NOOP_EXPORTER",
    "NOOP_ROUTER",
    "NonBlockingExporter",
    "NoopExporter",
    "NoopRouter",
    "Record",
    "RecordFilter",
    "Registration",
    "RegistrationError",
    "Router",
    "ShutdownError",
    "ShutdownTimeoutError",
    "Span",
    "SpanEvent",
    "TelexportError",
    "Transformer",
    "__version__",
    "configure",
    "dispatch",
    "get_router",
    "is_configured",
    "otel",
    "shutdown",
]


def __getattr__(name: str):
    if name == "otel":
        import importlib

        return importlib.import_module("telexport.exporters.otel")
    raise AttributeError(f"module 'telexport' has no attribute '{name}'")


def __dir__() -> list[str]:
    return sorted(__all__)
