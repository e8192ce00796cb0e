"""Fan-out of records to the exporters registered for their data type.

The router holds a static mapping from :class:`DataType` to an ordered list
of registrations. Each registration names one exporter and whether it is
enabled for that type, so a single exporter instance can opt into a subset
of data types by being registered once per type.

Dispatch never raises: a failing exporter is reported to the failure
handler and the remaining exporters still receive the record.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Optional

from telexport._internal.drain import Deadline
from telexport._internal.logging import (
    FailureContext,
    FailureHandler,
    describe,
    log_failure,
    report_failure,
)
from telexport.exceptions import (
    ConfigurationError,
    RegistrationError,
    ShutdownError,
    ShutdownTimeoutError,
)
from telexport.exporters.base import Exporter
from telexport.records import DataType, Record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Registration:
    """One exporter registered for one data type."""

    data_type: DataType
    exporter: Exporter
    enabled: bool = True


class Router(Exporter[Record]):
    """Dispatches each record to every enabled registration for its type.

    The router is itself an exporter: ``export`` dispatches and ``shutdown``
    shuts every registered exporter down, so routers nest.

    Args:
        on_failure: Receives exceptions raised by registered exporters.
    """

    def __init__(self, on_failure: FailureHandler = log_failure) -> None:
        self._on_failure = on_failure
        self._lock = threading.Lock()
        # Replaced wholesale on registration; dispatch reads it without locking.
        self._routes: dict[DataType, tuple[Registration, ...]] = {}
        self._closed = False
        self._shutdown_done = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    def register(
        self,
        data_type: DataType,
        exporter: Exporter,
        enabled: bool = True,
    ) -> Registration:
        """Register ``exporter`` for ``data_type``.

        Raises:
            RegistrationError: If the router is shut down or ``exporter``
                is not an Exporter.
        """
        if not isinstance(exporter, Exporter):
            raise RegistrationError(
                f"Expected an Exporter, got {type(exporter).__name__}"
            )
        try:
            data_type = DataType.parse(data_type)
        except ConfigurationError as e:
            raise RegistrationError(str(e)) from e
        registration = Registration(data_type, exporter, bool(enabled))
        with self._lock:
            if self._closed:
                raise RegistrationError("Cannot register exporters after shutdown")
            routes = dict(self._routes)
            routes[data_type] = routes.get(data_type, ()) + (registration,)
            self._routes = routes
        logger.debug(
            "Registered %s for %s (enabled=%s)",
            describe(exporter),
            data_type.value,
            registration.enabled,
        )
        return registration

    def register_for(
        self,
        exporter: Exporter,
        enabled_types: Iterable[DataType],
        supported_types: Optional[Iterable[DataType]] = None,
    ) -> list[Registration]:
        """Register ``exporter`` once per supported type.

        Each registration is enabled only if its type is in ``enabled_types``.
        ``supported_types`` defaults to every :class:`DataType`.
        """
        enabled = {DataType.parse(t) for t in enabled_types}
        supported = (
            list(DataType)
            if supported_types is None
            else [DataType.parse(t) for t in supported_types]
        )
        return [self.register(t, exporter, t in enabled) for t in supported]

    def registrations(self, data_type: Optional[DataType] = None) -> list[Registration]:
        """All registrations, or only those for ``data_type``."""
        routes = self._routes
        if data_type is not None:
            return list(routes.get(DataType.parse(data_type), ()))
        return [r for regs in routes.values() for r in regs]

    def exporters(self) -> list[Exporter]:
        """Distinct registered exporters (by identity), in registration order."""
        seen: set[int] = set()
        distinct: list[Exporter] = []
        for registration in self.registrations():
            if id(registration.exporter) not in seen:
                seen.add(id(registration.exporter))
                distinct.append(registration.exporter)
        return distinct

    def dispatch(self, record: Record) -> None:
        """Send ``record`` to every enabled exporter for its data type."""
        if self._closed:
            return
        for registration in self._routes.get(record.data_type, ()):
            if not registration.enabled:
                continue
            try:
                registration.exporter.export(record)
            except Exception as exc:
                report_failure(
                    self._on_failure,
                    exc,
                    FailureContext(
                        "dispatch", describe(registration.exporter), record.data_type
                    ),
                )

    def export(self, record: Record) -> None:
        self.dispatch(record)

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        deadline = Deadline(timeout)
        ok = True
        for exporter in self.exporters():
            try:
                ok = exporter.force_flush(deadline.remaining()) and ok
            except Exception as exc:
                report_failure(
                    self._on_failure, exc, FailureContext("force_flush", describe(exporter))
                )
                ok = False
        return ok

    def shutdown_all(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Shut every distinct registered exporter down exactly once.

        All exporters share one deadline. Failures are collected and raised
        together once every exporter has been asked to shut down.

        Raises:
            ShutdownTimeoutError: If any exporter timed out.
            ShutdownError: If any exporter failed to shut down.
        """
        with self._lock:
            if self._closed:
                first = False
            else:
                self._closed = True
                first = True
        deadline = Deadline(timeout, cancel)
        if not first:
            if not deadline.wait_for(self._shutdown_done):
                raise ShutdownTimeoutError(
                    "Router shutdown still in progress at the deadline"
                )
            return

        errors: list[BaseException] = []
        try:
            for exporter in self.exporters():
                try:
                    exporter.shutdown(deadline.remaining(), deadline.cancel_event)
                except Exception as exc:
                    logger.warning("Error shutting down %s: %s", describe(exporter), exc)
                    errors.append(exc)
        finally:
            self._shutdown_done.set()

        if not errors:
            logger.debug("Router shutdown complete")
            return
        message = f"{len(errors)} exporter(s) failed to shut down"
        timeouts = [e for e in errors if isinstance(e, ShutdownTimeoutError)]
        if timeouts:
            raise ShutdownTimeoutError(
                message,
                abandoned=sum(e.abandoned for e in timeouts),
                errors=errors,
            )
        raise ShutdownError(message, errors)

    def shutdown(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.shutdown_all(timeout, cancel)


class NoopRouter(Router):
    """Router installed before ``configure()``: drops every record.

    It is shared process-wide, so it accepts no registrations and ignores
    shutdown.
    """

    def register(
        self,
        data_type: DataType,
        exporter: Exporter,
        enabled: bool = True,
    ) -> Registration:
        raise RegistrationError(
            "The default router accepts no exporters; call telexport.configure() first"
        )

    def dispatch(self, record: Record) -> None:
        pass

    def shutdown_all(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        pass


NOOP_ROUTER = NoopRouter()
