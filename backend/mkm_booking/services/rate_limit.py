"""Per-address submission cooldown.

Each caller address may have one accepted booking per window. The check
and the timestamp update happen as one atomic step per key, so a burst of
concurrent requests from one address lets at most one through.

Two stores share the same interface:

- ``MemoryRateLimitStore``: process-local, best effort per running instance.
- ``RedisRateLimitStore``: shared across instances via ``SET NX PX``.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Protocol

import redis.asyncio as redis
from loguru import logger

from mkm_booking.config import settings

UNKNOWN_ADDRESS = "unknown"


class RateLimitStore(Protocol):
    async def get(self, key: str) -> float | None: ...

    async def set(self, key: str, timestamp: float) -> None: ...

    async def check_and_set(self, key: str, now: float, window: float) -> bool:
        """Record ``now`` for ``key`` unless the last record is within ``window``.

        Returns True when the timestamp was recorded.
        """
        ...

    async def close(self) -> None: ...


class MemoryRateLimitStore:
    """Dict of address → last accepted timestamp. Entries live for the process lifetime."""

    def __init__(self) -> None:
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> float | None:
        return self._entries.get(key)

    async def set(self, key: str, timestamp: float) -> None:
        with self._lock:
            self._entries[key] = timestamp

    async def check_and_set(self, key: str, now: float, window: float) -> bool:
        with self._lock:
            last = self._entries.get(key)
            if last is not None and now - last < window:
                return False
            self._entries[key] = now
            return True

    async def close(self) -> None:
        return None


class RedisRateLimitStore:
    """Shared store; the key expires when the cooldown ends."""

    def __init__(self, client: redis.Redis, *, prefix: str = "ratelimit:booking:") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> RedisRateLimitStore:
        return cls(redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> float | None:
        value = await self._client.get(self._prefix + key)
        return float(value) if value is not None else None

    async def set(self, key: str, timestamp: float) -> None:
        await self._client.set(self._prefix + key, repr(timestamp))

    async def check_and_set(self, key: str, now: float, window: float) -> bool:
        acquired = await self._client.set(
            self._prefix + key,
            repr(now),
            nx=True,
            px=max(1, int(window * 1000)),
        )
        return bool(acquired)

    async def close(self) -> None:
        await self._client.aclose()


class RateLimiter:
    """Cooldown check for booking submissions, keyed by caller address."""

    def __init__(
        self,
        store: RateLimitStore,
        *,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.window_seconds = window_seconds
        self._clock = clock

    async def allow(self, address: str) -> bool:
        """Accept and record a submission from ``address``, or refuse it.

        A refused submission leaves the stored timestamp untouched.
        """
        allowed = await self.store.check_and_set(address, self._clock(), self.window_seconds)
        if not allowed:
            logger.warning("Rate limited submission from {}", address)
        return allowed


def client_address(headers: Mapping[str, str], peer: str | None = None) -> str:
    """Best-effort caller address.

    First ``X-Forwarded-For`` entry, then ``X-Real-IP``, then the socket
    peer, then the literal ``"unknown"`` bucket.
    """
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    if peer:
        return peer

    return UNKNOWN_ADDRESS


def build_rate_limiter(redis_url: str, window_seconds: float) -> RateLimiter:
    if redis_url:
        logger.info("Using Redis rate-limit store")
        store: RateLimitStore = RedisRateLimitStore.from_url(redis_url)
    else:
        store = MemoryRateLimitStore()
    return RateLimiter(store, window_seconds=window_seconds)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter configured from settings."""
    return build_rate_limiter(settings.rate_limit_redis_url, settings.rate_limit_window_seconds)
