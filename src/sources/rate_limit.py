"""Rolling-window request counter for rate-limited external sources.

One limiter is owned by one adapter instance and shared by every search that
uses it, so all reads and writes go through a lock.
"""

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class RateLimitStatus(BaseModel):
    requests_used: int
    requests_remaining: int
    resets_at: datetime


class RateLimiter:
    """Allows up to ``max_requests`` per ``window_seconds``.

    The counter resets once a full window has elapsed since the window
    started.

    Usage::

        limiter = RateLimiter(1000, 3600)
        if limiter.try_acquire():
            ...  # make the request
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_requests < 1:
            msg = "max_requests must be at least 1"
            raise ValueError(msg)
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._window_start = clock()

    def can_request(self) -> bool:
        """Return True if another request fits in the current window."""
        with self._lock:
            self._roll_window()
            return self._count < self._max_requests

    def record(self) -> None:
        """Count a request that was made."""
        with self._lock:
            self._roll_window()
            self._count += 1

    def try_acquire(self) -> bool:
        """Atomically check the limit and count a request if allowed."""
        with self._lock:
            self._roll_window()
            if self._count >= self._max_requests:
                logger.debug(
                    "Rate limit reached: %d/%d", self._count, self._max_requests,
                )
                return False
            self._count += 1
            return True

    def status(self) -> RateLimitStatus:
        with self._lock:
            self._roll_window()
            resets_at = datetime.fromtimestamp(self._window_start) + timedelta(
                seconds=self._window_seconds,
            )
            return RateLimitStatus(
                requests_used=self._count,
                requests_remaining=max(0, self._max_requests - self._count),
                resets_at=resets_at,
            )

    def _roll_window(self) -> None:
        now = self._clock()
        if now - self._window_start >= self._window_seconds:
            self._count = 0
            self._window_start = now
