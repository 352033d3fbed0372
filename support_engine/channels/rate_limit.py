"""Per-recipient send-rate limiting for outbound channels.

:class:`InMemoryRateLimiter` keeps its windows in the process, so with more
than one API instance each instance enforces the limit on its own share of
traffic. Deployments running several instances should configure
``redis_url`` to get :class:`RedisRateLimiter`, which shares the counters.
"""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable, Protocol

from redis import asyncio as aioredis

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    async def hit(self, key: str) -> bool:
        """Record one send for ``key``; ``False`` when the window is exhausted."""
        ...


class InMemoryRateLimiter:
    """Fixed window counter keyed by recipient."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()
        self._lock = Lock()

    async def hit(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self._window:
                self._evict_expired(now)
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self._window:
                started, count = now, 0
            if count >= self._limit:
                return False
            self._windows[key] = (started, count + 1)
            return True

    def __len__(self) -> int:
        return len(self._windows)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self._window]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now


class RedisRateLimiter:
    """Fixed window counter stored in Redis so every instance sees the same count."""

    def __init__(
        self,
        client: aioredis.Redis,
        limit: int,
        window_seconds: int,
        *,
        prefix: str = "support:ratelimit",
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        self._client = client
        self._limit = limit
        self._window = int(window_seconds)
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, limit: int, window_seconds: int) -> "RedisRateLimiter":
        client = aioredis.from_url(url, decode_responses=True, socket_connect_timeout=5, socket_timeout=5)
        return cls(client, limit, window_seconds)

    async def hit(self, key: str) -> bool:
        redis_key = f"{self._prefix}:{key}"
        # INCR and EXPIRE go out in one MULTI so a counter never outlives its window.
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.expire(redis_key, self._window, nx=True)
            count, _ = await pipe.execute()
        return count <= self._limit

    async def close(self) -> None:
        await self._client.aclose()
