"""
auth/ratelimit.py -- Per-key moving-window attempt limiter backed by `limits`.

Each key (e.g. "login:203.0.113.7") owns the timestamps of its recent
admitted attempts, held in a limits MemoryStorage and checked with the
MovingWindowRateLimiter strategy (the same storage slowapi uses for
storage_uri="memory://"). An attempt is admitted and recorded only while
fewer than max_attempts remain inside the window. Rejected attempts are not
recorded, so a client hammering a closed window does not push its own
reopening further out.

Limits are supplied per call, not per instance, so one limiter serves both
the strict login limit and the looser registration limit. Windows are
whole seconds; window_ms is rounded up.

Concurrency: one lock serializes check-and-record, so two concurrent attempts
cannot both observe a free slot when only one exists.

Memory: MemoryStorage drops a key once its newest attempt has expired. Keys
with attempts still inside their window are never evicted early.

Per-process only: running multiple workers multiplies the effective limit.
"""

from __future__ import annotations

import logging
import math
import threading
import time

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

logger = logging.getLogger("careauth.ratelimit")

_NAMESPACE = "careauth"


def _item(max_attempts: int, window_ms: int) -> RateLimitItem:
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    if window_ms < 1:
        raise ValueError("window_ms must be >= 1")
    return RateLimitItemPerSecond(max_attempts, math.ceil(window_ms / 1000), namespace=_NAMESPACE)


class SlidingWindowRateLimiter:
    """Thread-safe per-key moving-window limiter.

    Usage:
        limiter = SlidingWindowRateLimiter()
        if not limiter.allow("login:203.0.113.7", 5, 60_000):
            retry_ms = limiter.retry_after_ms("login:203.0.113.7", 5, 60_000)
    """

    def __init__(self) -> None:
        self._storage = MemoryStorage()
        self._strategy = MovingWindowRateLimiter(self._storage)
        self._lock = threading.Lock()

    def allow(self, key: str, max_attempts: int, window_ms: int) -> bool:
        """Record an attempt for key and return True, or return False if the window is full.

        Raises ValueError only for non-positive max_attempts or window_ms.
        """
        item = _item(max_attempts, window_ms)
        with self._lock:
            return self._strategy.hit(item, key)

    def retry_after_ms(self, key: str, max_attempts: int, window_ms: int) -> int:
        """Milliseconds until the oldest recorded attempt for key leaves the window."""
        item = _item(max_attempts, window_ms)
        with self._lock:
            stats = self._strategy.get_window_stats(item, key)
        if stats.remaining >= max_attempts:
            return 0
        return max(0, math.ceil((stats.reset_time - time.time()) * 1000))

    def clear(self) -> None:
        """Forget every recorded attempt for every key."""
        with self._lock:
            self._storage.reset()
        logger.debug("Rate limit state cleared")
