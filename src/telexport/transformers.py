"""Composable exporters that forward derived records to an inner exporter.

Each transformer is built with its inner exporter already bound, so a chain
is assembled once at startup and never rewired:

    >>> chain = AttributeLimiter(
    ...     Batcher(NonBlockingExporter(terminal), max_batch_size=512),
    ...     max_attributes=128,
    ... )

Shutting down the head of a chain shuts down every link after it.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Optional

from telexport._internal.drain import Deadline
from telexport._internal.logging import (
    FailureContext,
    FailureHandler,
    describe,
    log_failure,
    report_failure,
)
from telexport.exceptions import ShutdownTimeoutError
from telexport.exporters.base import Exporter, T
from telexport.records import Batch, DataType, Record

logger = logging.getLogger(__name__)


class Transformer(Exporter[T]):
    """Base for exporters that forward to an inner exporter.

    Args:
        inner: The exporter to forward records to.
        on_failure: Receives exceptions raised while forwarding.
    """

    def __init__(self, inner: Exporter, on_failure: FailureHandler = log_failure) -> None:
        self._inner = inner
        self._on_failure = on_failure
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False
        self._shutdown_done = threading.Event()

    @property
    def inner(self) -> Exporter:
        return self._inner

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def _forward(self, record: Record) -> None:
        try:
            self._inner.export(record)
        except Exception as exc:
            report_failure(
                self._on_failure,
                exc,
                FailureContext("forward", describe(self), record.data_type),
            )

    def _on_shutdown(self, deadline: Deadline) -> None:
        """Hook for subclasses to flush state before the inner shutdown."""

    def shutdown(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        deadline = Deadline(timeout, cancel)
        with self._shutdown_lock:
            first = not self._is_shutdown
            self._is_shutdown = True
        if not first:
            if not deadline.wait_for(self._shutdown_done):
                raise ShutdownTimeoutError(
                    f"{describe(self)} shutdown still in progress at the deadline"
                )
            return
        try:
            self._on_shutdown(deadline)
            self._inner.shutdown(deadline.remaining(), deadline.cancel_event)
        finally:
            self._shutdown_done.set()

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        return self._inner.force_flush(timeout)


class AttributeLimiter(Transformer[T]):
    """Keeps at most ``max_attributes`` attributes per record.

    The first attributes by insertion order are kept; the rest are dropped.
    Records already within the limit are forwarded unchanged. Batches are
    limited member by member.
    """

    def __init__(
        self,
        inner: Exporter,
        max_attributes: int,
        on_failure: FailureHandler = log_failure,
    ) -> None:
        if max_attributes < 0:
            raise ValueError(f"max_attributes must be >= 0, got {max_attributes}")
        super().__init__(inner, on_failure)
        self._max_attributes = max_attributes

    @property
    def max_attributes(self) -> int:
        return self._max_attributes

    def export(self, record: T) -> None:
        if self._is_shutdown:
            return
        self._forward(self.limit(record))

    def limit(self, record: Record) -> Record:
        if isinstance(record, Batch):
            return Batch(record.batch_type, tuple(self.limit(r) for r in record.records))
        attributes = record.attributes
        if len(attributes) <= self._max_attributes:
            return record
        logger.debug(
            "Dropping %d attribute(s) from %s record",
            len(attributes) - self._max_attributes,
            record.data_type.value,
        )
        kept = dict(itertools.islice(attributes.items(), self._max_attributes))
        return record.with_attributes(kept)


class RecordFilter(Transformer[T]):
    """Forwards only records that match ``predicate``.

    Batches are filtered member by member; a batch left empty is not
    forwarded. A predicate that raises is reported and the record dropped.
    """

    def __init__(
        self,
        inner: Exporter,
        predicate: Callable[[Record], bool],
        on_failure: FailureHandler = log_failure,
    ) -> None:
        super().__init__(inner, on_failure)
        self._predicate = predicate

    def _matches(self, record: Record) -> bool:
        try:
            return bool(self._predicate(record))
        except Exception as exc:
            report_failure(
                self._on_failure,
                exc,
                FailureContext("filter", describe(self), record.data_type),
            )
            return False

    def export(self, record: T) -> None:
        if self._is_shutdown:
            return
        if isinstance(record, Batch):
            kept = tuple(r for r in record.records if self._matches(r))
            if kept:
                self._forward(Batch(record.batch_type, kept))
            return
        if self._matches(record):
            self._forward(record)


class Batcher(Transformer[T]):
    """Groups records into :class:`Batch` objects before forwarding.

    A batch is forwarded as soon as it holds ``max_batch_size`` records, or
    by a background worker every ``schedule_delay`` seconds, whichever comes
    first. Records are grouped per data type. ``shutdown`` forwards whatever
    is still buffered, one batch per data type, before shutting the inner
    exporter down.

    Args:
        inner: Exporter receiving :class:`Batch` records.
        max_batch_size: Records per batch that trigger an immediate forward.
        schedule_delay: Seconds between scheduled flushes of partial batches.
        on_failure: Receives exceptions raised by the inner exporter.
    """

    def __init__(
        self,
        inner: Exporter,
        max_batch_size: int = 512,
        schedule_delay: float = 5.0,
        on_failure: FailureHandler = log_failure,
    ) -> None:
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size must be >= 1, got {max_batch_size}")
        if schedule_delay <= 0:
            raise ValueError(f"schedule_delay must be > 0, got {schedule_delay}")
        super().__init__(inner, on_failure)
        self._max_batch_size = max_batch_size
        self._schedule_delay = schedule_delay
        # Held while buffering and forwarding so batches leave in arrival order.
        self._lock = threading.Lock()
        self._buffers: dict[DataType, list[Record]] = {}
        self._stop = threading.Event()
        self._worker = threading.Thread(
            target=self._run, name="telexport-batcher", daemon=True
        )
        self._worker.start()

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    @property
    def schedule_delay(self) -> float:
        return self._schedule_delay

    def export(self, record: T) -> None:
        with self._lock:
            if self._is_shutdown:
                return
            buffer = self._buffers.setdefault(record.data_type, [])
            if isinstance(record, Batch):
                buffer.extend(record.records)
            else:
                buffer.append(record)
            while len(buffer) >= self._max_batch_size:
                chunk = buffer[: self._max_batch_size]
                del buffer[: self._max_batch_size]
                self._forward(Batch(record.data_type, tuple(chunk)))

    def _run(self) -> None:
        while not self._stop.wait(self._schedule_delay):
            self._flush_buffers()

    def _flush_buffers(self) -> None:
        with self._lock:
            for data_type, buffer in self._buffers.items():
                if buffer:
                    batch = Batch(data_type, tuple(buffer))
                    buffer.clear()
                    self._forward(batch)

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        self._flush_buffers()
        return self._inner.force_flush(timeout)

    def _on_shutdown(self, deadline: Deadline) -> None:
        self._stop.set()
        if self._worker is not threading.current_thread():
            self._worker.join(deadline.remaining())
        self._flush_buffers()
