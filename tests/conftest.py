"""Shared pytest configuration and fixtures.

This module provides test fixtures that:
1. Reset the telexport global router between tests for isolation
2. Build records with predictable ids and attribute order
3. Provide typed fakes (RecordingExporter, FailureRecorder) instead of MagicMock
"""

from __future__ import annotations

from typing import Any, Callable, Generator

import pytest

from telexport.exporters.in_memory import InMemoryExporter
from telexport.records import Measure, Span
from tests.fakes import FailureRecorder, RecordingExporter


def _reset_sdk_state() -> None:
    """Reset the telexport SDK state for test isolation."""
    from telexport.sdk import lifecycle

    lifecycle._configured = False
    lifecycle._router = lifecycle.NOOP_ROUTER


@pytest.fixture(autouse=True)
def reset_sdk_state() -> Generator[None, None, None]:
    """Reset global SDK state before and after each test."""
    _reset_sdk_state()
    yield
    from telexport.sdk import lifecycle

    lifecycle.shutdown(timeout=5.0)
    _reset_sdk_state()


@pytest.fixture
def make_span() -> Callable[..., Span]:
    """Factory for spans with sequential span ids."""
    counter = {"next": 1}

    def _make(name: str = "op", attributes: dict[str, Any] | None = None, **kwargs: Any) -> Span:
        span_id = counter["next"]
        counter["next"] += 1
        fields: dict[str, Any] = {
            "name": name,
            "trace_id": 0xABC,
            "span_id": span_id,
            "start_time": 1_000,
            "end_time": 2_000,
            "attributes": attributes or {},
        }
        fields.update(kwargs)
        return Span(**fields)

    return _make


@pytest.fixture
def make_measure() -> Callable[..., Measure]:
    """Factory for measures."""

    def _make(name: str = "requests", value: float = 1, **kwargs: Any) -> Measure:
        return Measure(name=name, value=value, timestamp=kwargs.pop("timestamp", 1_000), **kwargs)

    return _make


@pytest.fixture
def recording_exporter() -> RecordingExporter:
    return RecordingExporter()


@pytest.fixture
def in_memory_exporter() -> Generator[InMemoryExporter, None, None]:
    """Provide an InMemoryExporter for capturing records in tests."""
    exporter = InMemoryExporter()
    yield exporter
    exporter.clear()


@pytest.fixture
def failures() -> FailureRecorder:
    return FailureRecorder()
