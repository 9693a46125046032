"""Fixed-window request throttling keyed by caller identity.

The in-memory limiter is local to one process. Horizontally scaled
deployments need a shared counter store behind ``BaseRateLimiter.check``;
call sites only depend on that contract.
"""

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    identifier: str
    count: int
    window_reset_at: int  # epoch milliseconds


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int
    reset_at: int  # epoch milliseconds
    retry_after_seconds: int = 0  # whole seconds until reset, for Retry-After


class BaseRateLimiter(ABC):
    """Admission control contract shared by all limiter backends."""

    @abstractmethod
    def check(self, identifier: str, max_requests: int, window_ms: int) -> RateLimitResult:
        """Record one request for ``identifier`` and report whether it is admitted."""


class InMemoryRateLimiter(BaseRateLimiter):
    """
    In-process limiter with one entry per identifier.

    Args:
        clock: Returns the current time in seconds since the epoch
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def check(self, identifier: str, max_requests: int, window_ms: int) -> RateLimitResult:
        if max_requests < 1 or window_ms < 1:
            raise ValueError("max_requests and window_ms must be positive")

        with self._lock:
            now = self._now_ms()
            entry = self._entries.get(identifier)

            if entry is None or now > entry.window_reset_at:
                entry = RateLimitEntry(identifier, 1, now + window_ms)
                self._entries[identifier] = entry
                return RateLimitResult(True, max_requests - 1, entry.window_reset_at)

            if entry.count >= max_requests:
                retry_after = max(0, -(-(entry.window_reset_at - now) // 1000))
                return RateLimitResult(False, 0, entry.window_reset_at, retry_after)

            entry.count += 1
            return RateLimitResult(True, max_requests - entry.count, entry.window_reset_at)

    def sweep(self) -> int:
        """
        Drop entries whose window has expired.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._now_ms()
            expired = [key for key, entry in self._entries.items() if now > entry.window_reset_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep expired entries forever; cancel the task to stop."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                logger.debug(f"Rate limiter swept {removed} expired entries")


# Limiter shared by the withdrawal routes
withdrawal_rate_limiter = InMemoryRateLimiter()
