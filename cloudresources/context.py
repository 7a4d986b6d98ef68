"""Reconcile context: deadline, cancellation, and a last-known status for early return."""

from dataclasses import dataclass, field
import threading
import time

from cloudresources.errors import ReconcileCancelledError


@dataclass
class ReconcileContext:
    """Context passed to every remote step of a tick; check() before each call."""

    deadline: float | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event)
    _status: str = ""

    @classmethod
    def with_timeout(cls, seconds: float) -> "ReconcileContext":
        """Build a context whose deadline is `seconds` from now (monotonic clock)."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def note(self, status: str) -> None:
        """Record the most recent known status, reported if the tick is cancelled."""
        self._status = status

    @property
    def status(self) -> str:
        return self._status

    def check(self) -> None:
        """Raise ReconcileCancelledError if the context is cancelled or past its deadline."""
        if not self.cancelled:
            return
        reason = "deadline exceeded" if self.expired and not self._cancelled.is_set() else "context cancelled"
        raise ReconcileCancelledError(reason, self._status or reason)

    def wait(self, seconds: float) -> None:
        """Sleep up to `seconds`, waking early on cancel; raise if cancelled."""
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        self._cancelled.wait(timeout)
        self.check()
