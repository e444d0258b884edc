from __future__ import annotations

import time
from threading import RLock
from typing import Callable


class CircuitBreaker:
    """Consecutive-failure circuit breaker.

    - Opens after `failure_threshold` consecutive failures
    - Stays open for `reset_seconds`, then lets one trial call through (half-open)
    - Thread-safe
    """

    CLOSED = 'closed'
    OPEN = 'open'
    HALF_OPEN = 'half_open'

    def __init__(self, failure_threshold: int = 5, reset_seconds: float = 30, clock: Callable[[], float] = time.monotonic):
        self._threshold = max(1, int(failure_threshold))
        self._reset = max(0.0, float(reset_seconds))
        self._clock = clock
        self._failures = 0
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._lock = RLock()

    @property
    def state(self) -> str:
        with self._lock:
            return self._state_locked()

    def _state_locked(self) -> str:
        if self._opened_at is None:
            return self.CLOSED
        if self._clock() - self._opened_at >= self._reset:
            return self.HALF_OPEN
        return self.OPEN

    def allow(self) -> bool:
        with self._lock:
            state = self._state_locked()
            if state == self.CLOSED:
                return True
            if state == self.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return True
            return False

    def retry_after(self) -> int:
        with self._lock:
            if self._opened_at is None:
                return 0
            remaining = self._reset - (self._clock() - self._opened_at)
            return max(1, int(remaining + 0.999))

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._opened_at = None
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._trial_in_flight or self._failures >= self._threshold:
                self._opened_at = self._clock()
            self._trial_in_flight = False
