"""Exception classes for the telexport SDK.

Producer-facing calls (``export``/``dispatch``) never raise these. They
surface only from administrative calls: configuration, registration and
shutdown.
"""

from __future__ import annotations

from typing import Sequence


class TelexportError(Exception):
    """Base class for all telexport errors."""


class ConfigurationError(TelexportError):
    """Raised when SDK configuration is invalid.

    This exception is only raised when configuration is invalid in strict
    validation mode. In permissive mode, configuration problems are logged
    and defaults are used instead.
    """


class RegistrationError(TelexportError):
    """Raised when an exporter cannot be registered with a router."""


class ShutdownError(TelexportError):
    """Raised when one or more exporters failed to shut down cleanly.

    Attributes:
        errors: The underlying failures, one per exporter that failed.
    """

    def __init__(self, message: str, errors: Sequence[BaseException] = ()) -> None:
        super().__init__(message)
        self.errors: tuple[BaseException, ...] = tuple(errors)


class ShutdownTimeoutError(ShutdownError):
    """Raised when shutdown gave up draining before its deadline.

    The exporter is still closed: further exports are dropped. ``abandoned``
    counts export tasks that had not finished when the deadline passed.
    """

    def __init__(
        self,
        message: str,
        abandoned: int = 0,
        errors: Sequence[BaseException] = (),
    ) -> None:
        super().__init__(message, errors)
        self.abandoned = abandoned
