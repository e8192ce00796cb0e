"""Main SDK entry points: configure(), dispatch(), shutdown(), is_configured().

This module provides the primary public interface for the SDK.
"""

from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Union

from telexport._internal.logging import FailureHandler, log_failure
from telexport.composite import CompositeExporter
from telexport.config import TELEXPORT_CONFIG_PATH_ENV, Config, load_config
from telexport.exporters.base import Exporter
from telexport.records import DataType, Record
from telexport.router import Router
from telexport.sdk import lifecycle

logger = logging.getLogger(__name__)

_atexit_registered = False
_shutdown_timeout: Optional[float] = None


def _shutdown_at_exit() -> None:
    lifecycle.shutdown(_shutdown_timeout)


def configure(
    terminals: Mapping[DataType, Exporter],
    config: Union[str, Path, Config, None] = None,
    on_failure: FailureHandler = log_failure,
) -> CompositeExporter:
    """Initialize the SDK with one terminal exporter per data type.

    Configuration can be provided as:
    - A path to a YAML config file (str or Path)
    - A Config object for programmatic configuration
    - None to use the TELEXPORT_CONFIG_PATH environment variable, or
      defaults when it is not set

    After initialization:
    - dispatch() sends records through a CompositeExporter
    - An atexit handler is registered for automatic shutdown
    - is_configured() returns True

    Args:
        terminals: Terminal exporter per data type.
        config: Configuration source (see above).
        on_failure: Receives export failures from every part of the pipeline.

    Returns:
        The CompositeExporter installed as the global router.

    Raises:
        ConfigurationError: If configuration is invalid (strict mode) or an
                           explicitly given config file is missing.
    """
    global _atexit_registered, _shutdown_timeout

    if isinstance(config, Config):
        resolved_config = config
    elif config is None and not os.environ.get(TELEXPORT_CONFIG_PATH_ENV):
        logger.debug("No configuration provided, using defaults")
        resolved_config = Config()
    else:
        resolved_config = load_config(config)

    composite = CompositeExporter.from_config(resolved_config, terminals, on_failure=on_failure)
    _shutdown_timeout = resolved_config.pipeline.shutdown_timeout

    previous = lifecycle.set_configured(composite)
    if previous is not None:
        try:
            previous.shutdown(_shutdown_timeout)
        except Exception as e:
            logger.warning("Error shutting down replaced router: %s", e)

    if not _atexit_registered:
        atexit.register(_shutdown_at_exit)
        _atexit_registered = True

    logger.debug(
        "SDK configured for service '%s' with data types: %s",
        resolved_config.service.name,
        ", ".join(sorted(t.value for t in resolved_config.enabled_types)),
    )
    return composite


def dispatch(record: Record) -> None:
    """Send a record to the global router. Never raises."""
    lifecycle.get_router().dispatch(record)


def get_router() -> Router:
    """Return the global router (a no-op router until configured)."""
    return lifecycle.get_router()


def shutdown(timeout: Optional[float] = None) -> None:
    """Shutdown the SDK and drain pending telemetry.

    This function:
    - Drains pending records to the terminal exporters
    - Shuts every exporter down exactly once
    - Resets is_configured() to return False

    It is idempotent and safe to call multiple times.

    Args:
        timeout: Seconds to wait for the drain. Defaults to the configured
                 pipeline.shutdown_timeout_millis.

    Raises:
        ShutdownTimeoutError: If the drain did not finish in time.
        ShutdownError: If any exporter failed to shut down.
    """
    lifecycle.shutdown(
        timeout if timeout is not None else _shutdown_timeout, raise_errors=True
    )


def is_configured() -> bool:
    """Check if the SDK has been initialized.

    Returns:
        True if configure() has been called successfully, False otherwise.
    """
    return lifecycle.is_configured()
