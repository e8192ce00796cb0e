"""Integration tests for the OpenTelemetry bridge.

Spans created through an OpenTelemetry TracerProvider flow into a
telexport composite and out to an OpenTelemetry InMemorySpanExporter.
"""

from __future__ import annotations

from typing import Generator

import pytest
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    SimpleSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from telexport.composite import CompositeExporter
from telexport.config import PipelineConfig
from telexport.exporters.in_memory import InMemoryExporter
from telexport.exporters.otel import (
    OpenTelemetrySpanExporter,
    RouterSpanExporter,
    readable_from_span,
    span_from_readable,
)
from telexport.records import Batch, DataType, Span, SpanEvent


@pytest.fixture
def otel_memory_exporter() -> Generator[InMemorySpanExporter, None, None]:
    exporter = InMemorySpanExporter()
    yield exporter
    exporter.clear()


def _provider(span_exporter: SpanExporter) -> TracerProvider:
    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: "test-service"}))
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider


@pytest.mark.integration
class TestSpanConversion:
    def test_round_trip_keeps_identity_and_attributes(self) -> None:
        span = Span(
            name="db.query",
            trace_id=0x1234,
            span_id=0x10,
            parent_id=0x01,
            start_time=100,
            end_time=250,
            attributes={"db.system": "postgresql", "rows": 3},
            events=(SpanEvent("retry", timestamp=150, attributes={"attempt": 2}),),
        )

        converted = span_from_readable(readable_from_span(span))

        assert converted.trace_id == span.trace_id
        assert converted.span_id == span.span_id
        assert converted.parent_id == span.parent_id
        assert (converted.start_time, converted.end_time) == (100, 250)
        assert dict(converted.attributes) == {"db.system": "postgresql", "rows": 3}
        assert converted.events[0].name == "retry"
        assert dict(converted.events[0].attributes) == {"attempt": 2}

    def test_root_span_has_no_parent(self) -> None:
        span = Span("root", trace_id=1, span_id=2, start_time=0, end_time=1)

        assert readable_from_span(span).parent is None
        assert span_from_readable(readable_from_span(span)).parent_id is None


@pytest.mark.integration
class TestRouterSpanExporter:
    def test_tracer_provider_feeds_composite(
        self, otel_memory_exporter: InMemorySpanExporter
    ) -> None:
        """
        GIVEN a TracerProvider exporting into a composite whose span terminal
              is an OpenTelemetry InMemorySpanExporter
        WHEN spans are created and the provider is shut down
        THEN every span reaches the OpenTelemetry exporter with attributes
             limited by the composite
        """
        composite = CompositeExporter(
            {DataType.SPAN: OpenTelemetrySpanExporter(otel_memory_exporter)},
            PipelineConfig(max_attributes=1, max_batch_size=10, schedule_delay_millis=60_000),
        )
        provider = _provider(RouterSpanExporter(composite))
        tracer = provider.get_tracer("tests")

        with tracer.start_as_current_span("parent") as parent:
            parent.set_attribute("first", 1)
            parent.set_attribute("second", 2)
            with tracer.start_as_current_span("child"):
                pass
        provider.shutdown()

        finished = otel_memory_exporter.get_finished_spans()
        assert sorted(s.name for s in finished) == ["child", "parent"]
        parent_span = next(s for s in finished if s.name == "parent")
        assert dict(parent_span.attributes) == {"first": 1}
        child_span = next(s for s in finished if s.name == "child")
        assert child_span.parent.span_id == parent_span.context.span_id

    def test_export_after_shutdown_reports_failure(self) -> None:
        terminal = InMemoryExporter()
        bridge = RouterSpanExporter(terminal)
        bridge.shutdown()

        assert bridge.export([]) is SpanExportResult.FAILURE
        assert terminal.shutdown_count == 1

    def test_shutdown_router_can_be_left_running(self) -> None:
        terminal = InMemoryExporter()
        bridge = RouterSpanExporter(terminal, shutdown_router=False)

        bridge.shutdown()

        assert terminal.shutdown_count == 0


@pytest.mark.integration
class TestOpenTelemetrySpanExporter:
    def test_batches_become_one_export_call(
        self, otel_memory_exporter: InMemorySpanExporter, make_span
    ) -> None:
        exporter = OpenTelemetrySpanExporter(otel_memory_exporter)

        exporter.export(Batch(DataType.SPAN, (make_span("a"), make_span("b"))))

        assert [s.name for s in otel_memory_exporter.get_finished_spans()] == ["a", "b"]

    def test_failure_result_is_reported(self, make_span, failures) -> None:
        class RejectingExporter(SpanExporter):
            def export(self, spans):
                return SpanExportResult.FAILURE

        exporter = OpenTelemetrySpanExporter(RejectingExporter(), on_failure=failures)
        exporter.export(make_span())

        assert len(failures.errors) == 1
        assert failures.contexts[0].exporter == "RejectingExporter"

    def test_non_span_records_are_ignored(
        self, otel_memory_exporter: InMemorySpanExporter, make_measure
    ) -> None:
        OpenTelemetrySpanExporter(otel_memory_exporter).export(make_measure())

        assert otel_memory_exporter.get_finished_spans() == ()

    def test_shutdown_is_forwarded_once(
        self, otel_memory_exporter: InMemorySpanExporter, make_span
    ) -> None:
        exporter = OpenTelemetrySpanExporter(otel_memory_exporter)

        exporter.shutdown()
        exporter.shutdown()
        exporter.export(make_span())

        assert otel_memory_exporter.get_finished_spans() == ()
