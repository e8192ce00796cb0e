"""Base exporter interface and the no-op default exporter."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from telexport.records import Record

T = TypeVar("T", bound=Record)


class Exporter(ABC, Generic[T]):
    """Accepts records of one data type for export.

    ``export`` is best-effort: it must not raise for downstream failures,
    which are reported through a failure handler instead. ``shutdown`` is
    idempotent; calling it again after a successful shutdown is a no-op.
    """

    @abstractmethod
    def export(self, record: T) -> None:
        """Export one record (or one batch of records)."""

    def shutdown(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Release exporter resources.

        Args:
            timeout: Seconds to wait for pending work, or None to wait forever.
            cancel: Event that aborts the wait when set.

        Raises:
            ShutdownTimeoutError: If pending work did not finish in time.
            ShutdownError: If the exporter failed to shut down.
        """

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        """Push buffered records downstream.

        Returns:
            True if flush completed successfully, False otherwise.
        """
        return True

    def __enter__(self) -> "Exporter[T]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()


class TerminalExporter(Exporter[T]):
    """Marker base for exporters with an external side effect.

    Terminal exporters end a chain (network, disk, memory). The contract is
    identical to :class:`Exporter`; the marker only lets wiring code tell
    the ends of chains apart from transformers.
    """


class NoopExporter(Exporter[T]):
    """Exporter that discards everything.

    Carries no per-instance state; use the shared :data:`NOOP_EXPORTER`.
    """

    __slots__ = ()

    def export(self, record: T) -> None:
        return None

    def shutdown(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        return None

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        return True

    def __repr__(self) -> str:
        return "NOOP_EXPORTER"


NOOP_EXPORTER: NoopExporter = NoopExporter()
