"""
Per-identity fixed-window request throttle.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


class RateLimitExceeded(Exception):
    """
    Raised when an identity has used up its window.
    """

    def __init__(self, *, identity: str, limit: int, retry_after_seconds: float) -> None:
        self.identity = identity
        self.limit = limit
        self.retry_after_seconds = max(0.0, retry_after_seconds)
        super().__init__(
            f"Rate limit exceeded for {identity!r}; retry after {self.retry_after} seconds."
        )

    @property
    def retry_after(self) -> int:
        """Whole seconds, rounded up, suitable for a Retry-After header."""
        return math.ceil(self.retry_after_seconds)


@dataclass
class RateLimitWindow:
    identity: str
    count: int
    window_start: float
    last_seen: float


class FixedWindowRateLimiter:
    """
    Allows ``max_requests`` per identity in each window of ``window_seconds``.

    A window starts with the first request after the previous one elapsed;
    an elapsed window is replaced outright rather than slid.
    """

    def __init__(
        self,
        *,
        window_seconds: float = 60.0,
        max_requests: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = max(0.001, window_seconds)
        self.max_requests = max(1, max_requests)
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    def is_rate_limited(self, identity: str) -> bool:
        """
        Count one request for ``identity`` and report whether it is over the limit.
        """

        now = self._clock()
        with self._lock:
            window = self._windows.get(identity)
            if window is None or now - window.window_start > self.window_seconds:
                self._windows[identity] = RateLimitWindow(
                    identity=identity,
                    count=1,
                    window_start=now,
                    last_seen=now,
                )
                return False

            window.count += 1
            window.last_seen = now
            return window.count > self.max_requests

    def check(self, identity: str) -> None:
        if self.is_rate_limited(identity):
            raise RateLimitExceeded(
                identity=identity,
                limit=self.max_requests,
                retry_after_seconds=self.reset_after(identity),
            )

    def remaining(self, identity: str) -> int:
        now = self._clock()
        with self._lock:
            window = self._windows.get(identity)
            if window is None or now - window.window_start > self.window_seconds:
                return self.max_requests
            return max(0, self.max_requests - window.count)

    def reset_after(self, identity: str) -> float:
        """
        Seconds until the identity's current window ends.
        """

        now = self._clock()
        with self._lock:
            window = self._windows.get(identity)
            if window is None:
                return 0.0
            return max(0.0, self.window_seconds - (now - window.window_start))

    def sweep(self) -> int:
        """
        Drop identities not seen for two full windows.
        """

        now = self._clock()
        idle_limit = self.window_seconds * 2
        with self._lock:
            stale = [
                identity
                for identity, window in self._windows.items()
                if now - window.last_seen > idle_limit
            ]
            for identity in stale:
                del self._windows[identity]
        return len(stale)

    def tracked_identities(self) -> int:
        with self._lock:
            return len(self._windows)
