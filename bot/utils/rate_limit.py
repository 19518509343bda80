from __future__ import annotations

from dataclasses import dataclass

from services.cache import CacheBackend


@dataclass(slots=True)
class RateLimitResult:
    allowed: bool
    current: int
    limit: int
    retry_after: float | None = None


class DistributedRateLimiter:
    """Fixed-window counter on top of a cache backend."""

    def __init__(self, cache: CacheBackend) -> None:
        self.cache = cache

    async def hit(self, key: str, *, limit: int, window_seconds: float) -> RateLimitResult:
        current = await self.cache.incr(key, ttl=window_seconds)
        allowed = current <= limit
        return RateLimitResult(
            allowed=allowed,
            current=current,
            limit=limit,
            retry_after=None if allowed else await self.cache.ttl(key),
        )
