"""Exporter wrapper that moves downstream work off the caller's thread.

``export`` admits the record through a :class:`DrainGate` and puts it on a
queue read by a single daemon worker thread, so the caller never waits on
downstream I/O and records from one producer reach the inner exporter in
submission order.

``shutdown`` closes the gate, waits for admitted work to drain (bounded by
a timeout or cancel event), swaps the inner exporter for the no-op
exporter and finally shuts the old inner exporter down exactly once.

The worker is a daemon thread, so it keeps serving the queue while
``atexit`` handlers run and never holds the interpreter open when an
inner exporter hangs past a shutdown deadline.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional

from telexport._internal.drain import Deadline, DrainGate
from telexport._internal.logging import (
    FailureContext,
    FailureHandler,
    describe,
    log_failure,
    report_failure,
)
from telexport.exceptions import ShutdownError, ShutdownTimeoutError
from telexport.exporters.base import NOOP_EXPORTER, Exporter, T

logger = logging.getLogger(__name__)

# Put on the queue once shutdown has swapped the inner exporter out.
_STOP = object()


class NonBlockingExporter(Exporter[T]):
    """Runs an inner exporter's ``export`` calls on a background worker.

    Records exported after shutdown has begun are dropped silently.

    Args:
        inner: The exporter that does the actual work.
        on_failure: Receives exceptions raised by ``inner.export``.
        name: Used for the worker thread name and in failure contexts.

    Example:
        >>> exporter = NonBlockingExporter(InMemoryExporter())
        >>> exporter.export(span)
        >>> exporter.shutdown(timeout=5.0)
    """

    def __init__(
        self,
        inner: Exporter[T],
        on_failure: FailureHandler = log_failure,
        name: Optional[str] = None,
    ) -> None:
        self._inner: Exporter[T] = inner
        self._on_failure = on_failure
        self._name = name or describe(inner)
        self._gate = DrainGate()
        self._queue: queue.Queue = queue.Queue()
        # Serializes admission+enqueue so queue order matches admission order.
        self._submit_lock = threading.Lock()
        self._shutdown_done = threading.Event()
        # Set when shutdown gave up; queued records are then dropped unexported.
        self._abandon = threading.Event()
        self._worker = threading.Thread(
            target=self._work, name=f"telexport-{self._name}", daemon=True
        )
        self._worker.start()

    @property
    def inner(self) -> Exporter[T]:
        return self._inner

    @property
    def pending(self) -> int:
        """Number of admitted export tasks that have not finished yet."""
        return self._gate.pending

    @property
    def closed(self) -> bool:
        return self._gate.closed

    def export(self, record: T) -> None:
        with self._submit_lock:
            if not self._gate.admit():
                logger.debug("%s closed, dropping %s record", self._name, record.data_type.value)
                return
            self._queue.put((self._inner, record))

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            if isinstance(item, threading.Event):
                item.set()
                continue
            inner, record = item
            try:
                if self._abandon.is_set():
                    logger.warning(
                        "%s dropping %s record abandoned by a timed-out shutdown",
                        self._name,
                        record.data_type.value,
                    )
                else:
                    self._export(inner, record)
            finally:
                self._gate.release()

    def _export(self, inner: Exporter[T], record: T) -> None:
        try:
            inner.export(record)
        except Exception as exc:
            report_failure(
                self._on_failure,
                exc,
                FailureContext("export", self._name, record.data_type),
            )

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued exports to finish, then flush the inner exporter."""
        marker = threading.Event()
        with self._submit_lock:
            if self._gate.closed:
                return True
            self._queue.put(marker)
        if not marker.wait(timeout):
            return False
        return self._inner.force_flush(timeout)

    def shutdown(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        deadline = Deadline(timeout, cancel)
        if not self._gate.close():
            # Another caller owns the drain; every caller returns only once
            # the exporter has been swapped out.
            if not deadline.wait_for(self._shutdown_done):
                raise ShutdownTimeoutError(
                    f"{self._name} shutdown still in progress at the deadline",
                    abandoned=self.pending,
                )
            return

        try:
            abandoned = self._gate.wait_drained(deadline)

            with self._submit_lock:
                old_inner, self._inner = self._inner, NOOP_EXPORTER
                if abandoned:
                    self._abandon.set()
                self._queue.put(_STOP)

            if abandoned:
                logger.warning(
                    "%s shutdown timed out with %d export(s) still in flight",
                    self._name,
                    abandoned,
                )
                raise ShutdownTimeoutError(
                    f"{self._name} did not drain before the shutdown deadline",
                    abandoned=abandoned,
                )

            try:
                old_inner.shutdown(deadline.remaining(), deadline.cancel_event)
            except ShutdownError:
                raise
            except Exception as exc:
                raise ShutdownError(
                    f"{self._name} inner exporter failed to shut down: {exc}", [exc]
                ) from exc
            logger.debug("%s shutdown complete", self._name)
        finally:
            self._shutdown_done.set()
