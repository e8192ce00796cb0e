"""Internal logging utilities and the default failure handler."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from telexport.records import DataType

# Create SDK logger
logger = logging.getLogger("telexport")

# Default to WARNING to avoid noise
logger.setLevel(logging.WARNING)


@dataclass(frozen=True)
class FailureContext:
    """Where a failure happened.

    Attributes:
        operation: The operation that failed (e.g. "export", "dispatch").
        exporter: Name of the exporter the failure belongs to.
        data_type: Data type of the record involved, if any.
    """

    operation: str
    exporter: str
    data_type: Optional["DataType"] = None


FailureHandler = Callable[[BaseException, FailureContext], None]


def log_internal_error(operation: str, error: BaseException) -> None:
    """Log an internal SDK error without raising to user code."""
    logger.warning("telexport internal error in %s: %s", operation, error, exc_info=error)


def log_failure(error: BaseException, context: FailureContext) -> None:
    """Default failure handler: log the failure and move on."""
    data_type = context.data_type.value if context.data_type is not None else "-"
    logger.warning(
        "Export failure in %s (exporter=%s, data_type=%s): %s",
        context.operation,
        context.exporter,
        data_type,
        error,
        exc_info=error,
    )


def report_failure(
    handler: FailureHandler,
    error: BaseException,
    context: FailureContext,
) -> None:
    """Hand a failure to ``handler``; a failing handler is logged, never raised."""
    try:
        handler(error, context)
    except Exception as handler_error:
        log_internal_error(f"failure handler for {context.operation}", handler_error)


def describe(obj: object) -> str:
    """Short, stable name for an exporter used in log lines and contexts."""
    return type(obj).__name__
