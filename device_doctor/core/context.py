"""Call context: deadline and cancellation carried into every device call."""

from __future__ import annotations

import threading
import time
from typing import Optional, Sequence

from device_doctor.core.errors import CommandCancelledError, CommandTimeoutError


class CallContext:
    """A caller-owned deadline plus a cancellation flag.

    One context is created per invocation and handed down to the
    transport; every command it runs is bounded by ``remaining()``.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.deadline: Optional[float] = (
            time.monotonic() + timeout if timeout is not None else None
        )
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def bound(self, timeout: float) -> float:
        """Clamp a per-command timeout to what is left of the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def check(self, command: Sequence[str] = ()) -> None:
        """Raise if the context is cancelled or past its deadline."""
        suffix = f": {' '.join(command)}" if command else ""
        if self.cancelled:
            raise CommandCancelledError(command, f"cancelled{suffix}")
        if self.expired():
            raise CommandTimeoutError(command, f"timed out{suffix}")


def background() -> CallContext:
    """A context with no deadline that is never cancelled by itself."""
    return CallContext()
