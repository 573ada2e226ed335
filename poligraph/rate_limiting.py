"""Thread-safe rate limiters gating calls to external services."""

import threading
import time
from typing import Callable, Optional


class TokenBucketRateLimiter:
    """Token bucket limiter used for knowledge-graph requests."""

    def __init__(
        self,
        requests_per_second: float = 5.0,
        burst_size: int = 5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum sustained request rate
            burst_size: Maximum burst size for token bucket
            clock: Monotonic time source
            sleep: Sleep function, replaceable in tests
        """
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        if burst_size < 1:
            raise ValueError("burst_size must be at least 1")

        self.requests_per_second = requests_per_second
        self.burst_size = burst_size
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.RLock()
        self._tokens = float(burst_size)
        self._last_refill_time = clock()

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill_time
        self._tokens = min(self.burst_size, self._tokens + elapsed * self.requests_per_second)
        self._last_refill_time = now

    def wait_if_needed(self) -> float:
        """Take one token, sleeping until one is available.

        Returns:
            Time waited in seconds
        """
        wait_time = 0.0

        with self._lock:
            self._refill(self._clock())

            if self._tokens >= 1.0:
                self._tokens -= 1.0
            else:
                wait_time = (1.0 - self._tokens) / self.requests_per_second
                self._sleep(wait_time)
                self._tokens = 0.0
                self._last_refill_time = self._clock()

        return wait_time


class FixedIntervalRateLimiter:
    """Enforces a minimum delay between consecutive calls (AI extraction)."""

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval cannot be negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_request_time: Optional[float] = None
        self._lock = threading.Lock()

    def wait_if_needed(self) -> float:
        """Wait if necessary to keep calls ``min_interval`` apart.

        Returns:
            Time waited in seconds
        """
        wait_time = 0.0
        with self._lock:
            now = self._clock()
            if self._last_request_time is not None:
                since_last = now - self._last_request_time
                if since_last < self.min_interval:
                    wait_time = self.min_interval - since_last
                    self._sleep(wait_time)
            self._last_request_time = self._clock()
        return wait_time
