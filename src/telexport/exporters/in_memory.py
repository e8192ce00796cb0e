"""Terminal exporter that keeps exported records in memory.

Useful in tests and during development, in the same way as OpenTelemetry's
``InMemorySpanExporter``.
"""

from __future__ import annotations

import threading
from typing import Optional

from telexport.exporters.base import TerminalExporter
from telexport.records import Record, iter_records


class InMemoryExporter(TerminalExporter[Record]):
    """Collects every exported record or batch, in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._exported: list[Record] = []
        self._is_shutdown = False
        self.shutdown_count = 0

    def export(self, record: Record) -> None:
        with self._lock:
            if self._is_shutdown:
                return
            self._exported.append(record)

    def exported(self) -> list[Record]:
        """Every record or batch passed to ``export``."""
        with self._lock:
            return list(self._exported)

    def records(self) -> list[Record]:
        """Individual records, with batches expanded."""
        with self._lock:
            return [r for exported in self._exported for r in iter_records(exported)]

    def clear(self) -> None:
        with self._lock:
            self._exported.clear()

    def shutdown(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        with self._lock:
            self.shutdown_count += 1
            self._is_shutdown = True
