"""Cancellation tokens and the bounded slot pool used by the executor."""

from __future__ import annotations

import threading
import time


class CancelToken:
    """One-shot cancellation signal with an optional deadline.

    The token fires either when ``cancel()`` is called or when its deadline
    (a ``time.monotonic()`` instant) passes. It can be shared between threads.
    """

    def __init__(self, deadline: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, timeout_s: float) -> CancelToken:
        """Create a token whose deadline is ``timeout_s`` seconds from now."""

        return cls(deadline=time.monotonic() + timeout_s)

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def cancel_requested(self) -> bool:
        """Return True if ``cancel()`` was called explicitly."""

        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token. Safe to call more than once."""

        self._event.set()

    def expired(self) -> bool:
        """Return True if the deadline has passed."""

        return self._deadline is not None and time.monotonic() >= self._deadline

    def fired(self) -> bool:
        """Return True if the token was cancelled or its deadline has passed."""

        return self.cancel_requested or self.expired()

    def remaining(self) -> float | None:
        """Return seconds left until the deadline, or None without one."""

        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())


class SlotPool:
    """Counting gate that bounds how many invocations run at once.

    Acquisition is cancellable through a :class:`CancelToken`. There is no
    fairness guarantee between waiters.
    """

    def __init__(self, capacity: int, poll_interval_s: float = 0.05) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._in_use = 0
        self._poll_interval_s = poll_interval_s
        self._condition = threading.Condition()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        with self._condition:
            return self._in_use

    def acquire(self, token: CancelToken | None = None) -> bool:
        """Take one slot, waiting until one frees up.

        Returns:
            True once a slot is held, False if the token fired first.
        """

        with self._condition:
            while self._in_use >= self._capacity:
                if token is not None and token.fired():
                    return False
                # Wake periodically so a cancel from another thread is observed.
                self._condition.wait(self._poll_interval_s if token is not None else None)
            if token is not None and token.fired():
                # This waiter may have consumed the release notification.
                self._condition.notify()
                return False
            self._in_use += 1
            return True

    def release(self) -> None:
        """Return one slot to the pool."""

        with self._condition:
            if self._in_use == 0:
                raise RuntimeError("release() called without a matching acquire()")
            self._in_use -= 1
            self._condition.notify()
