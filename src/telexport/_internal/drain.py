"""Admission/drain coordination shared by exporters that run work off-thread.

A :class:`DrainGate` behaves like a readers-writer lock where readers are
in-flight export tasks and the single writer is shutdown. Readers are
admitted until the gate closes; closing waits for every admitted reader to
leave, bounded by a :class:`Deadline`.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

# Upper bound on a single condition wait so cancellation is noticed promptly.
_POLL_INTERVAL = 0.05


class Deadline:
    """A timeout plus an optional cancellation event.

    ``timeout=None`` waits forever (until cancelled).
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self._expires_at = None if timeout is None else time.monotonic() + timeout
        self._cancel = cancel

    @property
    def cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def remaining(self) -> Optional[float]:
        """Seconds left, ``0.0`` once expired, or ``None`` when unbounded."""
        if self.cancelled:
            return 0.0
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def cancel_event(self) -> Optional[threading.Event]:
        return self._cancel

    def wait_for(self, event: threading.Event) -> bool:
        """Wait until ``event`` is set. Returns False if the deadline ran out first."""
        while not event.is_set():
            if self.expired:
                return False
            remaining = self.remaining()
            if remaining is None or remaining > _POLL_INTERVAL:
                remaining = _POLL_INTERVAL
            event.wait(remaining)
        return True


class DrainGate:
    """Counts admitted work and lets one closer wait for it to drain."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._pending = 0
        self._closed = False

    @property
    def pending(self) -> int:
        with self._cond:
            return self._pending

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def admit(self) -> bool:
        """Take a shared token. Returns False once the gate is closed."""
        with self._cond:
            if self._closed:
                return False
            self._pending += 1
            return True

    def release(self) -> None:
        """Return a token taken by a successful :meth:`admit`."""
        with self._cond:
            self._pending -= 1
            if self._pending <= 0:
                self._pending = 0
                self._cond.notify_all()

    def close(self) -> bool:
        """Stop admitting. Returns True only for the call that closed the gate."""
        with self._cond:
            if self._closed:
                return False
            self._closed = True
            return True

    def wait_drained(self, deadline: Deadline) -> int:
        """Block until no admitted work remains or ``deadline`` expires.

        Returns the number of tokens still outstanding (0 when fully drained).
        """
        with self._cond:
            while self._pending > 0:
                if deadline.expired:
                    break
                remaining = deadline.remaining()
                if remaining is None or remaining > _POLL_INTERVAL:
                    remaining = _POLL_INTERVAL
                self._cond.wait(remaining)
            return self._pending
