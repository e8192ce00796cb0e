"""Unit tests for Router fan-out, opt-in and shutdown.

Requirements covered:
- Failure isolation between registered exporters
- Per-type opt-in with shared exporter instances
- shutdown_all de-duplicates exporters by identity and aggregates errors
"""

from __future__ import annotations

import logging
import threading

import pytest

from telexport.exceptions import RegistrationError, ShutdownError, ShutdownTimeoutError
from telexport.records import DataType
from telexport.router import Router
from tests.fakes import BlockingShutdownExporter, FailingExporter, RecordingExporter


@pytest.mark.unit
class TestRouterDispatch:
    def test_failure_in_one_exporter_does_not_block_others(self, make_span, failures) -> None:
        """
        GIVEN exporters A (failing) and B registered for spans
        WHEN a span is dispatched
        THEN B still receives it, dispatch does not raise, and A's failure
             reaches the failure handler
        """
        router = Router(on_failure=failures)
        failing = FailingExporter()
        healthy = RecordingExporter()
        router.register(DataType.SPAN, failing)
        router.register(DataType.SPAN, healthy)
        span = make_span()

        router.dispatch(span)

        assert healthy.exported == [span]
        assert failing.attempts == 1
        assert failures.errors == [failing.error]
        assert failures.contexts[0].operation == "dispatch"
        assert failures.contexts[0].exporter == "FailingExporter"

    def test_failing_failure_handler_is_logged_not_raised(self, make_span, caplog) -> None:
        def broken_handler(error, context) -> None:
            raise ValueError("handler bug")

        router = Router(on_failure=broken_handler)
        router.register(DataType.SPAN, FailingExporter())

        with caplog.at_level(logging.WARNING, logger="telexport"):
            router.dispatch(make_span())

        messages = [r.getMessage() for r in caplog.records]
        assert "telexport internal error in failure handler for dispatch: handler bug" in messages

    def test_exporter_only_enabled_for_spans_never_sees_measures(
        self, make_span, make_measure
    ) -> None:
        """
        GIVEN one exporter registered enabled for spans and disabled for measures
        WHEN a span and a measure are dispatched
        THEN the exporter receives only the span
        """
        router = Router()
        exporter = RecordingExporter()
        router.register(DataType.SPAN, exporter, enabled=True)
        router.register(DataType.MEASURE, exporter, enabled=False)

        router.dispatch(make_measure())
        router.dispatch(make_span())

        assert [r.data_type for r in exporter.exported] == [DataType.SPAN]

    def test_register_for_enables_subset(self, make_span, make_measure) -> None:
        router = Router()
        exporter = RecordingExporter()

        registrations = router.register_for(exporter, enabled_types=["measure"])

        assert {(r.data_type, r.enabled) for r in registrations} == {
            (DataType.SPAN, False),
            (DataType.MEASURE, True),
        }
        router.dispatch(make_span())
        router.dispatch(make_measure())
        assert [r.data_type for r in exporter.exported] == [DataType.MEASURE]

    def test_register_for_limited_supported_types(self) -> None:
        router = Router()
        registrations = router.register_for(
            RecordingExporter(), enabled_types=[DataType.SPAN], supported_types=[DataType.SPAN]
        )

        assert len(registrations) == 1
        assert router.registrations(DataType.MEASURE) == []

    def test_dispatch_without_registrations_is_a_noop(self, make_span) -> None:
        Router().dispatch(make_span())

    def test_each_exporter_sees_dispatch_order(self, make_span) -> None:
        router = Router()
        first, second = RecordingExporter(), RecordingExporter()
        router.register(DataType.SPAN, first)
        router.register(DataType.SPAN, second)
        spans = [make_span() for _ in range(10)]

        for span in spans:
            router.dispatch(span)

        assert first.exported == spans
        assert second.exported == spans

    def test_router_nests_as_an_exporter(self, make_span) -> None:
        inner_router = Router()
        leaf = RecordingExporter()
        inner_router.register(DataType.SPAN, leaf)
        outer = Router()
        outer.register(DataType.SPAN, inner_router)

        outer.export(make_span())

        assert len(leaf.exported) == 1

    def test_register_rejects_non_exporters(self) -> None:
        with pytest.raises(RegistrationError):
            Router().register(DataType.SPAN, object())  # type: ignore[arg-type]

    def test_exporters_are_distinct_by_identity(self) -> None:
        router = Router()
        shared, other = RecordingExporter(), RecordingExporter()
        router.register(DataType.SPAN, shared)
        router.register(DataType.MEASURE, shared)
        router.register(DataType.MEASURE, other)

        assert router.exporters() == [shared, other]
        assert len(router.registrations()) == 3


@pytest.mark.unit
class TestRouterShutdown:
    def test_shared_exporter_is_shut_down_once(self) -> None:
        router = Router()
        shared = RecordingExporter()
        router.register(DataType.SPAN, shared)
        router.register(DataType.MEASURE, shared, enabled=False)

        router.shutdown_all(timeout=5)

        assert shared.shutdown_calls == 1

    def test_shutdown_is_idempotent(self) -> None:
        router = Router()
        exporter = RecordingExporter()
        router.register(DataType.SPAN, exporter)

        router.shutdown_all(timeout=5)
        router.shutdown(timeout=5)

        assert exporter.shutdown_calls == 1

    def test_dispatch_after_shutdown_is_dropped(self, make_span) -> None:
        router = Router()
        exporter = RecordingExporter()
        router.register(DataType.SPAN, exporter)
        router.shutdown_all()

        router.dispatch(make_span())

        assert exporter.exported == []

    def test_register_after_shutdown_raises(self) -> None:
        router = Router()
        router.shutdown_all()

        with pytest.raises(RegistrationError):
            router.register(DataType.SPAN, RecordingExporter())

    def test_errors_are_aggregated_and_all_exporters_shut_down(self) -> None:
        class BrokenShutdown(RecordingExporter):
            def shutdown(self, timeout=None, cancel=None) -> None:
                super().shutdown(timeout, cancel)
                raise OSError("disk full")

        router = Router()
        broken_a, healthy, broken_b = BrokenShutdown(), RecordingExporter(), BrokenShutdown()
        router.register(DataType.SPAN, broken_a)
        router.register(DataType.SPAN, healthy)
        router.register(DataType.MEASURE, broken_b)

        with pytest.raises(ShutdownError) as excinfo:
            router.shutdown_all(timeout=5)

        assert len(excinfo.value.errors) == 2
        assert not isinstance(excinfo.value, ShutdownTimeoutError)
        assert [e.shutdown_calls for e in (broken_a, healthy, broken_b)] == [1, 1, 1]

    def test_timeouts_surface_as_shutdown_timeout_error(self) -> None:
        class SlowShutdown(RecordingExporter):
            def shutdown(self, timeout=None, cancel=None) -> None:
                raise ShutdownTimeoutError("still draining", abandoned=3)

        router = Router()
        router.register(DataType.SPAN, SlowShutdown())

        with pytest.raises(ShutdownTimeoutError) as excinfo:
            router.shutdown_all(timeout=1)

        assert excinfo.value.abandoned == 3

    def test_force_flush_reaches_every_exporter(self) -> None:
        router = Router()
        a, b = RecordingExporter(), RecordingExporter()
        router.register(DataType.SPAN, a)
        router.register(DataType.MEASURE, b)
        router.register(DataType.MEASURE, a)

        assert router.force_flush(timeout=1) is True
        assert (a.flush_calls, b.flush_calls) == (1, 1)

    def test_racing_shutdown_all_raises_until_first_caller_finishes(self) -> None:
        """
        GIVEN one caller blocked inside an exporter's shutdown
        WHEN a second caller runs shutdown_all with a short timeout
        THEN it raises ShutdownTimeoutError, and once the first caller
             finishes later calls return normally
        """
        router = Router()
        exporter = BlockingShutdownExporter()
        router.register(DataType.SPAN, exporter)
        first = threading.Thread(target=router.shutdown_all, kwargs={"timeout": 5}, daemon=True)
        first.start()
        assert exporter.entered.wait(2)

        with pytest.raises(ShutdownTimeoutError):
            router.shutdown_all(timeout=0.1)

        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ShutdownTimeoutError):
            router.shutdown(cancel=cancel)

        exporter.release.set()
        first.join(5)

        assert not first.is_alive()
        router.shutdown_all(timeout=0.1)
        assert exporter.shutdown_calls == 1
