"""
TTL cache shared by metadata sync and the on-demand data service.

The cache is advisory: every backend error is logged and treated as a miss,
and entries can be evicted at any time without affecting correctness.

Keys are "{purpose}:{dataset_id}" where purpose is one of CachePurpose;
each purpose has its own TTL (see CacheSettings).
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import redis.asyncio as redis
from pydantic import BaseModel

from portal_catalog.core.config import CacheSettings, get_settings
from portal_catalog.schemas.enums import CachePurpose

logger = logging.getLogger(__name__)

__all__ = [
    "CacheBackend",
    "MemoryCache",
    "RedisCache",
    "PortalCache",
    "cache_key",
    "get_cache",
]


def cache_key(purpose: CachePurpose | str, dataset_id: str) -> str:
    """Build the cache key for one purpose and dataset."""
    return f"{CachePurpose(purpose).value}:{dataset_id}"


class CacheBackend(ABC):
    """Narrow get/set/delete interface over a string key-value store."""

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    async def close(self) -> None:
        return None


class MemoryCache(CacheBackend):
    """
    In-process TTL dictionary. Default backend when no Redis URL is set.

    Expired entries are swept on every write, and at most `max_entries` are
    kept; the oldest writes are evicted first.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 1024):
        self._clock = clock
        self.max_entries = max(1, max_entries)
        self._entries: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        now = self._clock()
        self._sweep(now)
        # Re-inserting moves the key to the end of the eviction order
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_entries:
            del self._entries[next(iter(self._entries))]
        self._entries[key] = (value, now + ttl)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache(CacheBackend):
    """Redis-backed cache using redis.asyncio with a lazily created client."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._redis: redis.Redis | None = None

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
            )
        return self._redis

    async def get(self, key: str) -> str | None:
        try:
            return await self._client().get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis get failed for {key}: {e}")
            return None

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._client().set(key, value, ex=ttl)
        except redis.RedisError as e:
            logger.warning(f"Redis set failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        try:
            await self._client().delete(key)
        except redis.RedisError as e:
            logger.warning(f"Redis delete failed for {key}: {e}")

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed")


class PortalCache:
    """
    JSON cache keyed by purpose and dataset identifier.

    Usage:
        cache = PortalCache(MemoryCache())
        await cache.set(CachePurpose.DATA, dataset_id, payload)
        payload = await cache.get(CachePurpose.DATA, dataset_id)
    """

    def __init__(self, backend: CacheBackend, settings: CacheSettings | None = None):
        self.backend = backend
        self.settings = settings or get_settings().cache

    def ttl_for(self, purpose: CachePurpose) -> int:
        """TTL in seconds for a purpose."""
        return {
            CachePurpose.DATA: self.settings.data_ttl,
            CachePurpose.METADATA: self.settings.metadata_ttl,
            CachePurpose.LISTING_PAGE: self.settings.listing_ttl,
        }[CachePurpose(purpose)]

    async def get(self, purpose: CachePurpose, dataset_id: str) -> Any | None:
        """Decoded payload, or None on miss or undecodable entry."""
        key = cache_key(purpose, dataset_id)
        raw = await self.backend.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Dropping undecodable cache entry {key}")
            await self.backend.delete(key)
            return None

    async def set(self, purpose: CachePurpose, dataset_id: str, value: Any) -> None:
        """Replace the whole entry; pydantic models are dumped in JSON mode."""
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        raw = json.dumps(value, ensure_ascii=False, default=str)
        await self.backend.set(cache_key(purpose, dataset_id), raw, self.ttl_for(purpose))

    async def delete(self, purpose: CachePurpose, dataset_id: str) -> None:
        await self.backend.delete(cache_key(purpose, dataset_id))


_cache: PortalCache | None = None


def get_cache() -> PortalCache:
    """Process-wide cache: Redis when CACHE_REDIS_URL is set, memory otherwise."""
    global _cache
    if _cache is None:
        settings = get_settings().cache
        backend: CacheBackend
        if settings.redis_url:
            backend = RedisCache(settings.redis_url)
            logger.info("Using Redis cache backend")
        else:
            backend = MemoryCache(max_entries=settings.memory_max_entries)
            logger.info("CACHE_REDIS_URL not set, using in-memory cache backend")
        _cache = PortalCache(backend, settings)
    return _cache


async def close_cache() -> None:
    """Release the process-wide cache backend."""
    global _cache
    if _cache is not None:
        await _cache.backend.close()
        _cache = None
