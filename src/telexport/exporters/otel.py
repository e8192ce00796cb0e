"""Bridge between telexport and the OpenTelemetry SDK.

Two directions are supported:

- :class:`RouterSpanExporter` is an OpenTelemetry ``SpanExporter`` that
  feeds finished spans from a ``TracerProvider`` into a telexport router.
- :class:`OpenTelemetrySpanExporter` is a telexport terminal exporter that
  hands spans to any OpenTelemetry ``SpanExporter`` (OTLP, console,
  in-memory, ...).
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional, Sequence

from opentelemetry.sdk.trace import Event, ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from opentelemetry.trace import SpanContext, TraceFlags

from telexport._internal.logging import (
    FailureContext,
    FailureHandler,
    describe,
    log_failure,
    report_failure,
)
from telexport.exporters.base import Exporter, TerminalExporter
from telexport.records import DataType, Record, Span, SpanEvent, iter_records

if TYPE_CHECKING:
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
        OTLPSpanExporter as HTTPSpanExporter,
    )

logger = logging.getLogger(__name__)


def span_from_readable(span: ReadableSpan) -> Span:
    """Convert a finished OpenTelemetry span into a :class:`Span` record."""
    context = span.context
    parent = span.parent
    return Span(
        name=span.name,
        trace_id=context.trace_id if context is not None else 0,
        span_id=context.span_id if context is not None else 0,
        parent_id=parent.span_id if parent is not None else None,
        start_time=span.start_time or 0,
        end_time=span.end_time or 0,
        attributes=dict(span.attributes or {}),
        events=tuple(
            SpanEvent(
                name=event.name,
                timestamp=event.timestamp,
                attributes=dict(event.attributes or {}),
            )
            for event in span.events
        ),
    )


def readable_from_span(span: Span) -> ReadableSpan:
    """Convert a :class:`Span` record back into an OpenTelemetry span."""
    flags = TraceFlags(TraceFlags.SAMPLED)
    parent = None
    if span.parent_id is not None:
        parent = SpanContext(span.trace_id, span.parent_id, is_remote=False, trace_flags=flags)
    return ReadableSpan(
        name=span.name,
        context=SpanContext(span.trace_id, span.span_id, is_remote=False, trace_flags=flags),
        parent=parent,
        attributes=dict(span.attributes),
        events=[
            Event(event.name, attributes=dict(event.attributes), timestamp=event.timestamp)
            for event in span.events
        ],
        start_time=span.start_time,
        end_time=span.end_time,
    )


class RouterSpanExporter(SpanExporter):
    """OpenTelemetry SpanExporter that dispatches spans into a router.

    Args:
        router: Any telexport exporter, usually a Router or CompositeExporter.
        shutdown_router: Whether ``shutdown`` also shuts the router down.

    Example:
        >>> provider = TracerProvider()
        >>> provider.add_span_processor(
        ...     SimpleSpanProcessor(RouterSpanExporter(composite))
        ... )
    """

    def __init__(self, router: Exporter, shutdown_router: bool = True) -> None:
        self._router = router
        self._shutdown_router = shutdown_router
        self._is_shutdown = False

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        if self._is_shutdown:
            return SpanExportResult.FAILURE
        for span in spans:
            self._router.export(span_from_readable(span))
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        if self._is_shutdown:
            return
        self._is_shutdown = True
        if self._shutdown_router:
            self._router.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._router.force_flush(timeout_millis / 1000.0)


class OpenTelemetrySpanExporter(TerminalExporter[Record]):
    """Terminal exporter that forwards span records to an OpenTelemetry exporter.

    Accepts single spans or batches of spans; each call becomes one
    ``SpanExporter.export`` call. A ``FAILURE`` result or an exception is
    reported to the failure handler and not retried.
    """

    def __init__(
        self,
        span_exporter: SpanExporter,
        on_failure: FailureHandler = log_failure,
    ) -> None:
        self._span_exporter = span_exporter
        self._on_failure = on_failure
        self._lock = threading.Lock()
        self._is_shutdown = False

    @property
    def span_exporter(self) -> SpanExporter:
        return self._span_exporter

    def export(self, record: Record) -> None:
        if self._is_shutdown:
            return
        spans = [readable_from_span(r) for r in iter_records(record) if isinstance(r, Span)]
        if not spans:
            return
        context = FailureContext("export", describe(self._span_exporter), DataType.SPAN)
        try:
            result = self._span_exporter.export(spans)
        except Exception as exc:
            report_failure(self._on_failure, exc, context)
            return
        if result is SpanExportResult.FAILURE:
            report_failure(
                self._on_failure,
                RuntimeError(f"{describe(self._span_exporter)} failed to export {len(spans)} span(s)"),
                context,
            )

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        if timeout is None:
            return self._span_exporter.force_flush()
        return self._span_exporter.force_flush(int(timeout * 1000))

    def shutdown(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        with self._lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True
        self._span_exporter.shutdown()


def create_otlp_span_exporter(
    endpoint: str,
    headers: Optional[dict[str, str]] = None,
) -> "HTTPSpanExporter":
    """Create an OTLP/HTTP span exporter.

    Requires the ``otlp`` extra (opentelemetry-exporter-otlp-proto-http).

    Raises:
        ImportError: If the OTLP exporter package is not installed.
    """
    try:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter as HTTPSpanExporter,
        )
    except ImportError:
        raise ImportError(
            "OTLP export requires 'opentelemetry-exporter-otlp-proto-http'.\n"
            "Install with: pip install telexport[otlp]"
        ) from None

    logger.debug("Creating OTLP/HTTP span exporter for %s", endpoint)
    return HTTPSpanExporter(endpoint=endpoint, headers=headers if headers else None)
