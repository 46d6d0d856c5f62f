"""Token bucket shared by every outbound request."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, NamedTuple


class Probe(NamedTuple):
    """Result of a withdrawal attempt."""
    consumed: bool
    remaining: int
    wait_seconds: float


class TokenBucket:
    """Bucket of ``capacity`` tokens refilled at ``capacity`` per ``period``.

    Each spent token returns to the bucket exactly one period after it was
    withdrawn, so no rolling window of ``period`` seconds ever sees more than
    ``capacity`` withdrawals. ``try_withdraw`` never blocks and never awaits,
    which keeps it atomic for asyncio tasks; the lock covers threads.
    """

    def __init__(
        self,
        capacity: int,
        period_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        self.capacity = capacity
        self.period_seconds = period_seconds
        self._clock = clock
        self._spent: deque[float] = deque()
        self._lock = threading.Lock()

    def try_withdraw(self) -> Probe:
        """Take one token if available, else report how long until one is."""
        with self._lock:
            now = self._clock()
            self._expire(now)
            if len(self._spent) < self.capacity:
                self._spent.append(now)
                return Probe(True, self.capacity - len(self._spent), 0.0)
            wait = self._spent[0] + self.period_seconds - now
            return Probe(False, 0, max(wait, 0.0))

    @property
    def available(self) -> int:
        with self._lock:
            self._expire(self._clock())
            return self.capacity - len(self._spent)

    def _expire(self, now: float) -> None:
        while self._spent and now - self._spent[0] >= self.period_seconds:
            self._spent.popleft()
