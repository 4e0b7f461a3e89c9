"""
Sliding-window admission gate keyed by client address.

Each key owns a deque of request timestamps. Timestamps that fell out of the
trailing window are evicted lazily on the next check for that key.
"""
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Protocol

import structlog

logger = structlog.get_logger(__name__)


class RateLimiter(Protocol):
    def admit(self, client_key: str) -> bool:
        ...


class InMemoryRateLimiter:
    """
    Process-local sliding window limiter.

    The whole evict/count/record sequence runs under one lock, so concurrent
    callers can never record more than ``max_requests`` entries per window.
    """

    def __init__(
        self,
        window_seconds: float = 15 * 60,
        max_requests: int = 50,
        clock: Callable[[], float] = time.monotonic,
        name: str = "checkout",
    ):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.name = name
        self._clock = clock
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def admit(self, client_key: str) -> bool:
        """
        Record a request for ``client_key`` if the window has room.

        Returns:
            bool: False when the client already used its quota
        """
        with self._lock:
            now = self._clock()
            window = self._windows.setdefault(client_key, deque())
            cutoff = now - self.window_seconds
            while window and window[0] <= cutoff:
                window.popleft()

            if len(window) >= self.max_requests:
                logger.warning(
                    "rate_limit_exceeded",
                    limiter=self.name,
                    client_key=client_key,
                    in_window=len(window),
                )
                return False

            window.append(now)
            return True

    def in_window(self, client_key: str) -> int:
        """Number of recorded requests for a key, without evicting."""
        with self._lock:
            return len(self._windows.get(client_key, ()))
