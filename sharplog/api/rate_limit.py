"""
Sliding-window rate limiter for the HTTP endpoints.

Keeps a log of request timestamps per client key. The backing store is
pluggable; if it fails the request is let through rather than rejected.
"""

from __future__ import annotations
import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Protocol

logger = logging.getLogger("sharplog.ratelimit")


class WindowStore(Protocol):
    def hits_since(self, key: str, cutoff: float) -> list[float]: ...
    def add(self, key: str, timestamp: float) -> None: ...


class InMemoryWindowStore:
    """Per-process timestamp log. Fine for a single server."""

    def __init__(self):
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def hits_since(self, key: str, cutoff: float) -> list[float]:
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            return list(hits)

    def add(self, key: str, timestamp: float) -> None:
        with self._lock:
            self._hits[key].append(timestamp)


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset: float                 # epoch seconds when the oldest hit leaves the window
    degraded: bool = False       # store failed, request let through unchecked

    def headers(self) -> dict[str, str]:
        if self.degraded:
            return {}
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset)),
        }


class SlidingWindowRateLimiter:
    """At most max_requests per key within any window_seconds span."""

    def __init__(
        self,
        max_requests: int = 300,
        window_seconds: float = 15 * 60,
        store: WindowStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.store = store or InMemoryWindowStore()
        self.clock = clock
        self.stats = {"allowed": 0, "rejected": 0, "store_errors": 0}

    def check(self, key: str) -> RateLimitDecision:
        """Record a request for key and say whether it may proceed."""
        now = self.clock()
        try:
            hits = self.store.hits_since(key, now - self.window_seconds)
            reset = (hits[0] if hits else now) + self.window_seconds
            if len(hits) >= self.max_requests:
                self.stats["rejected"] += 1
                logger.warning(f"Rate limit exceeded for {key} ({len(hits)} requests in window)")
                return RateLimitDecision(False, self.max_requests, 0, reset)
            self.store.add(key, now)
        except Exception as e:
            # Fail open
            self.stats["store_errors"] += 1
            logger.error(f"Rate limit store error, allowing request: {e}")
            return RateLimitDecision(True, self.max_requests, self.max_requests, now, degraded=True)

        self.stats["allowed"] += 1
        return RateLimitDecision(True, self.max_requests, self.max_requests - len(hits) - 1, reset)
