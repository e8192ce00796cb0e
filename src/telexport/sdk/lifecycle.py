"""Global SDK state management.

This module manages the singleton state of the SDK, including:
- The active router (a no-op router until the SDK is configured)
- Whether the SDK has been configured
- Shutdown coordination
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from telexport.exceptions import ShutdownError
from telexport.router import NOOP_ROUTER, Router

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_configured: bool = False
_router: Router = NOOP_ROUTER


def set_configured(router: Router) -> Optional[Router]:
    """Install ``router`` as the global router.

    Returns:
        The previously configured router, if any, so the caller can shut it
        down.
    """
    global _configured, _router
    with _lock:
        previous = _router if _configured else None
        if _configured:
            logger.warning(
                "SDK already configured. Replacing the active router; "
                "call shutdown() before re-initializing."
            )
        _configured = True
        _router = router
    return previous


def is_configured() -> bool:
    """Check if the SDK has been configured.

    Returns:
        True if configure() has been called successfully.
    """
    return _configured


def get_router() -> Router:
    """Get the active router. Never None: defaults to a no-op router."""
    return _router


def shutdown(timeout: Optional[float] = None, raise_errors: bool = False) -> None:
    """Shutdown the active router and drain pending telemetry.

    This function is idempotent and safe to call multiple times.
    After shutdown, is_configured() returns False and records are dropped.

    Args:
        timeout: Seconds to wait for pending exports, or None to wait forever.
        raise_errors: Re-raise ShutdownError instead of logging it.
    """
    global _configured, _router
    with _lock:
        router = _router if _configured else None
        _configured = False
        _router = NOOP_ROUTER
    if router is None:
        return
    try:
        router.shutdown(timeout)
        logger.debug("Router shutdown complete")
    except ShutdownError as e:
        if raise_errors:
            raise
        logger.warning("Error during router shutdown: %s", e)
