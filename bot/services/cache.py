from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import redis.asyncio as redis

from core.config import RedisConfig

LOGGER = logging.getLogger(__name__)


class CacheBackend(Protocol):
    async def get(self, key: str) -> Any: ...
    async def set(self, key: str, value: Any, ttl: float | None = None) -> None: ...
    async def delete(self, key: str) -> None: ...
    async def incr(self, key: str, ttl: float | None = None) -> int: ...
    async def ttl(self, key: str) -> float | None: ...
    async def close(self) -> None: ...


@dataclass(slots=True)
class _MemoryValue:
    value: Any
    expires_at: float | None


class MemoryCache(CacheBackend):
    """Process-local cache with per-key expiry."""

    def __init__(self) -> None:
        self._store: dict[str, _MemoryValue] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _expiry(ttl: float | None) -> float | None:
        return time.monotonic() + ttl if ttl else None

    def _live(self, key: str) -> _MemoryValue | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and time.monotonic() >= entry.expires_at:
            self._store.pop(key, None)
            return None
        return entry

    async def get(self, key: str) -> Any:
        async with self._lock:
            entry = self._live(key)
            return entry.value if entry else None

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        async with self._lock:
            self._store[key] = _MemoryValue(value=value, expires_at=self._expiry(ttl))

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._store.pop(key, None)

    async def incr(self, key: str, ttl: float | None = None) -> int:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                self._store[key] = _MemoryValue(value=1, expires_at=self._expiry(ttl))
                return 1
            entry.value = int(entry.value) + 1
            return entry.value

    async def ttl(self, key: str) -> float | None:
        async with self._lock:
            entry = self._live(key)
            if entry is None or entry.expires_at is None:
                return None
            return max(0.0, entry.expires_at - time.monotonic())

    async def close(self) -> None:
        self._store.clear()


class RedisCache(CacheBackend):
    def __init__(self, url: str) -> None:
        self._client = redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Any:
        return await self._client.get(key)

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if ttl:
            await self._client.set(key, value, px=int(ttl * 1000))
        else:
            await self._client.set(key, value)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def incr(self, key: str, ttl: float | None = None) -> int:
        current = int(await self._client.incr(key))
        if ttl and current == 1:
            # The first hit of a window starts its expiry.
            await self._client.pexpire(key, int(ttl * 1000))
        return current

    async def ttl(self, key: str) -> float | None:
        remaining = await self._client.pttl(key)
        if remaining is None or remaining < 0:
            return None
        return remaining / 1000

    async def close(self) -> None:
        await self._client.aclose()


async def build_cache(config: RedisConfig) -> CacheBackend:
    if config.enabled:
        LOGGER.info("Using Redis cache at %s", config.url)
        return RedisCache(config.url)
    LOGGER.info("Using in-memory cache")
    return MemoryCache()
