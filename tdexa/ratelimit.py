"""Token bucket rate limiter."""

from __future__ import annotations

import threading
import time
from typing import Callable


class RateLimiter:
    """Token bucket refilled with one token every ``interval`` seconds, up to ``burst``.

    The bucket starts full.
    """

    def __init__(
        self,
        interval: float,
        burst: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = float(interval)
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self.burst), self._tokens + elapsed / self.interval)
        self._last = now

    def allow(self) -> bool:
        """Take a token if one is available right now."""
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    def wait(self, timeout: float | None = None) -> None:
        """Block until a token is available.

        Raises TimeoutError at once if the token cannot be had within
        ``timeout`` seconds; nothing is reserved in that case.
        """
        if self.burst < 1:
            raise ValueError("limiter burst is smaller than one token")
        if timeout is not None and timeout <= 0:
            raise TimeoutError("rate limiter wait timed out")
        with self._lock:
            self._refill()
            delay = max(0.0, (1 - self._tokens) * self.interval)
            if timeout is not None and delay > timeout:
                raise TimeoutError(
                    f"rate limiter would need {delay:.3f}s, exceeding {timeout:.3f}s"
                )
            self._tokens -= 1
        if delay > 0:
            self._sleep(delay)