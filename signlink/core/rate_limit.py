# File: signlink/core/rate_limit.py

import threading
import time


class RateLimiter:
    """
    Fixed-window request counter per client address.

    Counts are approximate under contention only in the sense that a window
    boundary may land between two requests; each increment holds the lock.
    """

    def __init__(self, window_ms: int, max_requests: int, clock=time.monotonic):
        self.window = window_ms / 1000.0
        self.max_requests = max_requests
        self._clock = clock
        self._buckets = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Record one request for ``key``; False when it is over the limit."""
        now = self._clock()
        key = key or "unknown"
        with self._lock:
            window_start, count = self._buckets.get(key, (now, 0))
            if now - window_start >= self.window:
                window_start, count = now, 0
            count += 1
            self._buckets[key] = (window_start, count)
        return count <= self.max_requests

    def prune(self, now: float = None) -> int:
        """Drop buckets idle for more than two windows. Returns how many were removed."""
        now = self._clock() if now is None else now
        stale_after = self.window * 2
        with self._lock:
            stale = [key for key, (start, _) in self._buckets.items() if now - start > stale_after]
            for key in stale:
                del self._buckets[key]
        return len(stale)

    def __len__(self):
        return len(self._buckets)
