"""Per-caller fixed-window rate limiting for external provider calls."""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from journal_digest.config.logger import get_logger
from journal_digest.config.settings import settings
from journal_digest.errors import RateLimited

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int
    window_seconds: float


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float


@dataclass
class _Window:
    count: int
    reset_time: float


RATE_LIMITS: dict[str, RateLimitPolicy] = {
    "summary_generation": RateLimitPolicy(
        settings.RATE_LIMIT_SUMMARY_MAX, settings.RATE_LIMIT_SUMMARY_WINDOW
    ),
    "combined_summary": RateLimitPolicy(
        settings.RATE_LIMIT_COMBINED_MAX, settings.RATE_LIMIT_COMBINED_WINDOW
    ),
    "digest_entry": RateLimitPolicy(
        settings.RATE_LIMIT_DIGEST_ENTRY_MAX, settings.RATE_LIMIT_DIGEST_ENTRY_WINDOW
    ),
}


class RateLimitStore(ABC):
    """Store contract: atomically check the quota for a key and consume one unit."""

    @abstractmethod
    async def check_and_consume(self, key: str) -> RateLimitResult:
        ...

    async def enforce(self, key: str) -> RateLimitResult:
        """Consume one unit or raise RateLimited without queueing."""
        result = await self.check_and_consume(key)
        if not result.allowed:
            logger.warning("[rate_limit] quota exhausted reset_time=%.0f", result.reset_time)
            raise RateLimited(reset_time=result.reset_time, remaining=result.remaining)
        return result


class InMemoryRateLimiter(RateLimitStore):
    """Fixed-window counter kept in a bounded LRU map.

    State is per process and is lost on restart.
    """

    def __init__(
        self,
        policy: RateLimitPolicy,
        max_keys: int = settings.RATE_LIMIT_MAX_KEYS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.policy = policy
        self._max_keys = max_keys
        self._clock = clock
        self._windows: OrderedDict[str, _Window] = OrderedDict()
        self._lock = asyncio.Lock()

    async def check_and_consume(self, key: str) -> RateLimitResult:
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window.reset_time:
                window = _Window(count=0, reset_time=now + self.policy.window_seconds)

            allowed = window.count < self.policy.max_requests
            if allowed:
                window.count += 1

            self._windows[key] = window
            self._windows.move_to_end(key)
            while len(self._windows) > self._max_keys:
                self._windows.popitem(last=False)

            return RateLimitResult(
                allowed=allowed,
                remaining=max(0, self.policy.max_requests - window.count),
                reset_time=window.reset_time,
            )

    def reset(self) -> None:
        self._windows.clear()


_LIMITERS: dict[str, InMemoryRateLimiter] = {}


def get_rate_limiter(namespace: str) -> InMemoryRateLimiter:
    limiter = _LIMITERS.get(namespace)
    if limiter is None:
        policy = RATE_LIMITS.get(namespace)
        if policy is None:
            raise ValueError(f"Unknown rate limit namespace: {namespace}")
        limiter = InMemoryRateLimiter(policy)
        _LIMITERS[namespace] = limiter
    return limiter
