import json
import logging
from typing import Awaitable, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from cms.config import settings

logger = logging.getLogger(__name__)

ARTICLE_KEY = "article:{article_id}"
ARTICLE_LIST_PATTERN = "articles:*"


def article_key(article_id: str) -> str:
    return ARTICLE_KEY.format(article_id=article_id)


class CacheManager:
    """
    Read-through / invalidate-on-write cache backed by Redis.

    Every public method degrades gracefully: when Redis is not connected or
    a command fails, reads behave as a miss and writes are skipped.  The
    relational store stays the source of truth, so a cache failure never
    fails (or rolls back) the request that triggered it.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, url: str | None = None) -> None:
        """Open the connection pool.  Called once at application startup."""
        url = url or settings.REDIS_URL
        self._redis = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", url)
        except RedisError as exc:
            logger.warning("Redis ping failed, serving from the database only: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Key-value operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the deserialised value for *key*, or None on a miss or error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except RedisError as exc:
            logger.warning("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        logger.debug("Cache hit: %s", key)
        return json.loads(data)

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """Store *value* as JSON under *key*, expiring after *ttl* seconds."""
        if not self._redis:
            return
        ttl = ttl if ttl is not None else settings.CACHE_TTL
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except RedisError as exc:
            logger.warning("Cache SET error for key=%r: %s", key, exc)

    async def delete(self, key: str) -> None:
        if not self._redis:
            return
        try:
            await self._redis.delete(key)
        except RedisError as exc:
            logger.warning("Cache DELETE error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching the glob *pattern* (SCAN, not KEYS)."""
        if not self._redis:
            return
        try:
            keys: list[str] = []
            async for key in self._redis.scan_iter(match=pattern):
                keys.append(key)
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except RedisError as exc:
            logger.warning("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    async def read_through(
        self,
        key: str,
        load: Callable[[], Awaitable[dict]],
        ttl: int | None = None,
    ) -> dict:
        """Return the cached value for *key*, or await *load* and cache its result."""
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await load()
        await self.set(key, value, ttl)
        return value

    # ------------------------------------------------------------------
    # Article invalidation
    # ------------------------------------------------------------------

    async def invalidate_article(self, article_id: str | None = None) -> None:
        """
        Drop every cached article list page and, when *article_id* is
        given, the detail entry for that article.

        List pages are dropped wholesale whatever filter produced them:
        any write can move an article into or out of any page.
        """
        if article_id is not None:
            await self.delete(article_key(article_id))
        await self.delete_pattern(ARTICLE_LIST_PATTERN)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()
