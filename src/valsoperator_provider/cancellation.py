"""Cancellation signal shared by the host and in-flight store calls.

A ``CancellationToken`` carries an optional deadline and an explicit
``cancel()``. Store calls check it before they start, bound their HTTP
request timeout by the time left, and stop waiting on an in-flight request
once it fires.

Example:
    >>> token = CancellationToken.with_timeout(30)
    >>> token.check()  # raises OperationCancelledError once expired
"""

from __future__ import annotations

import threading
import time
from typing import Any

from valsoperator_provider.errors import OperationCancelledError

# Seconds between cancellation checks while a request is in flight.
POLL_INTERVAL = 0.05


class CancellationToken:
    """Deadline plus explicit cancellation flag.

    Safe to share between the thread running a call and the thread that
    cancels it.

    Args:
        deadline: Absolute ``time.monotonic()`` deadline, or None.
    """

    def __init__(self, deadline: float | None = None) -> None:
        self._deadline = deadline
        self._event = threading.Event()

    @classmethod
    def with_timeout(cls, seconds: float) -> CancellationToken:
        """Create a token expiring ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        """Cancel every call observing this token."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Return True once cancelled or past the deadline."""
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Return seconds left before the deadline, None when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait_for(
        self,
        pending: Any,
        *,
        kind: str = "",
        namespace: str = "",
        name: str = "",
        interval: float = POLL_INTERVAL,
    ) -> None:
        """Block until ``pending`` is ready, raising as soon as this token fires.

        ``pending`` is the ``ApplyResult`` of an ``async_req`` kubernetes call
        (anything with ``ready()`` and ``wait(timeout)``).

        Raises:
            OperationCancelledError: If cancelled or past the deadline first.
        """
        while not pending.ready():
            self.check(kind=kind, namespace=namespace, name=name)
            remaining = self.remaining()
            pending.wait(interval if remaining is None else min(interval, remaining))

    def check(self, *, kind: str = "", namespace: str = "", name: str = "") -> None:
        """Raise if cancelled.

        Raises:
            OperationCancelledError: If cancelled or past the deadline.
        """
        if self._event.is_set():
            raise OperationCancelledError(
                kind=kind, namespace=namespace, name=name, reason="cancelled by caller"
            )
        if self.cancelled:
            raise OperationCancelledError(
                kind=kind, namespace=namespace, name=name, reason="deadline exceeded"
            )


__all__ = ["POLL_INTERVAL", "CancellationToken"]
