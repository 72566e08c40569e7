"""Search response cache.

Backends hold opaque strings with a TTL. ``ResponseCache`` sits on top and is
advisory: any backend failure is logged and treated as a miss, so a cache
outage only costs a live aggregation.
"""
from __future__ import annotations

import time
from typing import Callable, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from job_aggregator.config import Settings
from job_aggregator.errors import CacheError
from job_aggregator.log import get_logger
from job_aggregator.models import JobSearchFilters, JobSearchResponse

log = get_logger(__name__)

DEFAULT_TTL_SECONDS = 1800


class CacheBackend(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def close(self) -> None: ...


class MemoryCache:
    """Process-local backend used when no Redis is configured.

    Expired entries are dropped when read, and ``set`` sweeps the whole map
    at most once per ``sweep_interval`` seconds so keys that are never read
    again do not accumulate.
    """

    def __init__(
        self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0
    ) -> None:
        self._items: dict[str, tuple[str, float | None]] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def __len__(self) -> int:
        return len(self._items)

    async def get(self, key: str) -> str | None:
        item = self._items.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._items[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        expires_at = now + ttl_seconds if ttl_seconds > 0 else None
        self._items[key] = (value, expires_at)

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, (_, expires_at) in self._items.items()
            if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self._items[key]
        self._next_sweep = now + self._sweep_interval
        if expired:
            log.debug(
                "Memory cache swept %d expired entries, %d left", len(expired), len(self._items)
            )

    async def close(self) -> None:
        self._items.clear()


class RedisCache:
    def __init__(self, url: str) -> None:
        self._client = aioredis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except RedisError as exc:
            raise CacheError(f"Redis GET failed: {exc}") from exc

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds if ttl_seconds > 0 else None)
        except RedisError as exc:
            raise CacheError(f"Redis SET failed: {exc}") from exc

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except RedisError as exc:
            raise CacheError(f"Redis close failed: {exc}") from exc


class ResponseCache:
    def __init__(self, backend: CacheBackend, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds

    async def get_response(self, filters: JobSearchFilters) -> JobSearchResponse | None:
        key = filters.cache_key()
        try:
            payload = await self.backend.get(key)
        except CacheError as exc:
            log.warning("Cache read failed, treating as miss: %s", exc)
            return None
        if payload is None:
            return None
        try:
            return JobSearchResponse.from_json(payload)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            log.warning("Discarding unreadable cache entry %s: %s", key, exc)
            return None

    async def store_response(self, filters: JobSearchFilters, response: JobSearchResponse) -> bool:
        try:
            await self.backend.set(filters.cache_key(), response.to_json(), self.ttl_seconds)
            return True
        except (CacheError, TypeError, ValueError) as exc:
            log.warning("Cache write skipped: %s", exc)
            return False

    async def close(self) -> None:
        try:
            await self.backend.close()
        except CacheError as exc:
            log.debug("Cache close failed: %s", exc)


def create_cache(settings: Settings) -> ResponseCache:
    if settings.redis_url:
        log.info("Using Redis cache")
        backend: CacheBackend = RedisCache(settings.redis_url)
    else:
        log.info("REDIS_URL not set — using in-memory cache")
        backend = MemoryCache()
    return ResponseCache(backend, ttl_seconds=settings.cache_ttl_seconds)
