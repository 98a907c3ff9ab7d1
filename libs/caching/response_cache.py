"""
Tenant-scoped response cache for triage answers.

Exact-match only: the key is the tenant id plus the fingerprint of the
normalized message text. Entries live for 24 hours (Redis TTL, re-checked
against the stored timestamp on read) or until the tenant's knowledge changes.

Caching is best-effort. Any Redis failure is logged and treated as a miss
(reads) or a no-op (writes).
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from libs.common.text import fingerprint, preview

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 86400


@dataclass
class CacheStats:
    """Cache statistics for monitoring."""

    total_requests: int = 0
    hits: int = 0
    misses: int = 0
    writes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate overall cache hit rate."""
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests


class ResponseCache:
    """
    Exact-match response cache isolated per tenant.

    Usage:
        cache = ResponseCache()
        await cache.connect()

        cached = await cache.get(tenant_id, text)
        if cached is None:
            response = await answer(text)
            await cache.put(tenant_id, text, response)
    """

    def __init__(
        self,
        redis_client=None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        operation_timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize response cache.

        Args:
            redis_client: Async Redis client (None disables caching until connect())
            ttl_seconds: Lifetime of a cached response
            operation_timeout: Upper bound for every Redis call
            clock: Wall-clock source used for stored_at and age checks
        """
        self._redis_client = redis_client
        self.ttl_seconds = ttl_seconds
        self.operation_timeout = operation_timeout
        self._clock = clock
        self._stats = CacheStats()

    @property
    def available(self) -> bool:
        return self._redis_client is not None

    @property
    def redis_client(self):
        """Underlying Redis client, shared with other Redis-backed stores."""
        return self._redis_client

    async def connect(self, use_fake: Optional[bool] = None):
        """Attach to the shared Redis client; stays disabled if Redis is down."""
        if self._redis_client is not None:
            return

        from libs.caching.redis_client import get_redis_client

        self._redis_client = await get_redis_client(use_fake=use_fake)

        if self._redis_client is None:
            logger.warning("Failed to connect to Redis, response caching disabled")
            return

        logger.info("ResponseCache connected to Redis", ttl_seconds=self.ttl_seconds)

    @staticmethod
    def cache_key(tenant_id: str, text: str) -> Optional[str]:
        """Build the tenant-scoped key, or None when the text has no content."""
        digest = fingerprint(text)
        if not digest:
            return None
        return f"cache:{tenant_id}:{digest}"

    async def _call(self, coro):
        return await asyncio.wait_for(coro, timeout=self.operation_timeout)

    async def get(self, tenant_id: str, text: str) -> Optional[str]:
        """
        Look up a cached response for this tenant.

        Returns:
            The cached response text, or None on miss, expiry or store failure
        """
        self._stats.total_requests += 1

        key = self.cache_key(tenant_id, text)
        if key is None or self._redis_client is None:
            self._stats.misses += 1
            return None

        try:
            raw = await self._call(self._redis_client.get(key))
        except Exception as e:
            self._stats.errors += 1
            self._stats.misses += 1
            logger.warning("Cache lookup failed, treating as miss", tenant_id=tenant_id, error=str(e))
            return None

        if not raw:
            self._stats.misses += 1
            return None

        try:
            entry = json.loads(raw)
            response = entry["response"]
            stored_at = float(entry["stored_at"])
        except (ValueError, KeyError, TypeError) as e:
            self._stats.misses += 1
            logger.warning("Discarding malformed cache entry", cache_key=key, error=str(e))
            await self._evict(key)
            return None

        if self._clock() - stored_at >= self.ttl_seconds:
            self._stats.misses += 1
            await self._evict(key)
            return None

        self._stats.hits += 1
        logger.info("Cache hit", tenant_id=tenant_id, query_preview=preview(text))
        return response

    async def put(self, tenant_id: str, text: str, response: Optional[str]) -> bool:
        """
        Store a response for this tenant.

        Empty responses and content-free messages are never cached.

        Returns:
            True if the entry was written
        """
        if not response or not response.strip():
            return False

        key = self.cache_key(tenant_id, text)
        if key is None or self._redis_client is None:
            return False

        value = json.dumps({"response": response, "stored_at": self._clock()})

        try:
            await self._call(self._redis_client.setex(key, self.ttl_seconds, value))
        except Exception as e:
            self._stats.errors += 1
            logger.warning("Failed to cache response", tenant_id=tenant_id, error=str(e))
            return False

        self._stats.writes += 1
        logger.debug("Response cached", cache_key=key, ttl_seconds=self.ttl_seconds)
        return True

    async def _evict(self, key: str):
        try:
            await self._call(self._redis_client.delete(key))
        except Exception as e:
            logger.debug("Lazy eviction failed", cache_key=key, error=str(e))

    async def invalidate_tenant(self, tenant_id: str) -> int:
        """
        Drop every cached response of one tenant.

        Returns:
            Number of keys deleted
        """
        if self._redis_client is None:
            return 0

        pattern = f"cache:{tenant_id}:*"
        try:
            cursor = 0
            deleted = 0

            while True:
                cursor, keys = await self._call(
                    self._redis_client.scan(cursor=cursor, match=pattern, count=100)
                )

                if keys:
                    deleted += await self._call(self._redis_client.delete(*keys))

                if cursor == 0:
                    break

            logger.info("Tenant cache invalidated", tenant_id=tenant_id, deleted=deleted)
            return deleted

        except Exception as e:
            self._stats.errors += 1
            logger.error("Error invalidating tenant cache", tenant_id=tenant_id, error=str(e))
            return 0

    def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats
