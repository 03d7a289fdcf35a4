import asyncio
import json
from typing import Any, Callable, Optional

from cachetools import TTLCache
from redis.asyncio import Redis, RedisError

from app.core.config import Settings, get_settings

import logging

logger = logging.getLogger(__name__)

# Errors the backing store may raise. Anything in this tuple is converted to a
# cache miss or a skipped write; it never reaches the caller.
CACHE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)

_MISS = object()


class CacheLayer:
    """
    Read-through Redis cache for relation listings.

    Features:
    - Deterministic, namespaced keys (see app.cache.keys)
    - Stampede protection with per-key locks
    - Every Redis call bounded by a timeout
    - Graceful degradation: when Redis is unavailable or failing, reads go
      straight to the loader and writes/invalidations are skipped

    Staleness is bounded by the TTL. Invalidation is not coordinated across
    processes: a loader racing an invalidation may write back a value that
    was read before the mutation, which then lives until the TTL expires.
    """

    def __init__(self, settings: Settings | None = None, redis: Redis | None = None):
        self._settings = settings
        self._redis: Redis | None = redis
        self._initialized = False

        # Lock management for cache stampede protection. The TTL exceeds any
        # plausible loader duration so a lock cannot expire while held.
        self._locks: TTLCache | None = None

        # Stats tracking
        self.stats = {
            "hits": 0,
            "misses": 0,
            "errors": 0,
            "invalidations": 0,
        }

    @property
    def available(self) -> bool:
        return self._redis is not None

    async def init_cache(self):
        """Initialize settings and the Redis connection. Safe to call repeatedly."""
        if self._initialized:
            return

        if self._settings is None:
            self._settings = get_settings()
        settings = self._settings

        if self._locks is None:
            self._locks = TTLCache(maxsize=settings.cache_lock_maxsize, ttl=300)

        try:
            if self._redis is None:
                self._redis = Redis.from_url(
                    settings.redis_dsn,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=settings.redis_pool_size,
                    socket_connect_timeout=settings.cache_op_timeout_seconds,
                    socket_timeout=settings.cache_op_timeout_seconds,
                    socket_keepalive=True,
                    health_check_interval=30,
                )

            # Verify connection
            await asyncio.wait_for(
                self._redis.ping(), timeout=settings.cache_op_timeout_seconds
            )
            logger.info("Redis connection established")

        except CACHE_ERRORS as e:
            logger.error(f"Redis initialization failed, caching disabled: {e}")
            # Pass-through operation: every read hits the primary store
            self._redis = None

        self._initialized = True
        logger.info("Cache layer initialized (redis=%s)", self.available)

    def _key(self, key: str) -> str:
        """Build namespaced cache key."""
        return f"{self._settings.cache_namespace}{key}"

    def _serialize(self, value: Any) -> str:
        """Serialize value for storage."""
        return json.dumps(value, default=str)

    def _deserialize(self, raw: str) -> Any:
        """Deserialize value from storage, or _MISS if the entry is unreadable."""
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable cache entry")
            return _MISS

    def _lock_for(self, key: str) -> asyncio.Lock:
        # setdefault hands every concurrent caller the same lock object
        return self._locks.setdefault(key, asyncio.Lock())

    async def _guarded(self, operation: str, key: str, call: Callable[[], Any]):
        """Run one Redis call with the configured timeout, swallowing failures."""
        try:
            return await asyncio.wait_for(
                call(), timeout=self._settings.cache_op_timeout_seconds
            )
        except CACHE_ERRORS as e:
            logger.error(f"Redis {operation} error for {key}: {e!r}")
            self.stats["errors"] += 1
            return _MISS

    async def _read(self, key: str) -> Any:
        raw = await self._guarded("GET", key, lambda: self._redis.get(self._key(key)))
        if raw is _MISS or raw is None:
            return _MISS
        return self._deserialize(raw)

    async def get(
        self,
        key: str,
        loader: Optional[Callable[[], Any]] = None,
        ttl: Optional[int] = None,
    ):
        """
        Retrieve value from cache, falling back to loader on a miss.

        Args:
            key: Cache key (will be namespaced automatically)
            loader: Async function to load value on cache miss
            ttl: TTL in seconds (uses default if None)

        Returns:
            Cached value or loaded value, or None if not found
        """
        await self.init_cache()

        if not self._redis:
            self.stats["misses"] += 1
            return await loader() if loader is not None else None

        value = await self._read(key)
        if value is not _MISS:
            self.stats["hits"] += 1
            logger.debug("Cache hit: %s", key)
            return value

        if loader is None:
            self.stats["misses"] += 1
            logger.debug("Cache miss, no loader: %s", key)
            return None

        # Acquire per-key lock for stampede protection
        async with self._lock_for(key):
            # Double-check after acquiring lock
            value = await self._read(key)
            if value is not _MISS:
                self.stats["hits"] += 1
                return value

            self.stats["misses"] += 1
            logger.debug("Loading from source: %s", key)
            value = await loader()

            if value is None:
                return None

            await self._write(key, value, ttl)
            return value

    async def _write(self, key: str, value: Any, ttl: int | None = None):
        if not self._redis:
            return
        try:
            data = self._serialize(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Serialization failed for {key}: {e}")
            self.stats["errors"] += 1
            return

        ex = ttl or self._settings.cache_ttl_seconds
        result = await self._guarded(
            "SET", key, lambda: self._redis.set(self._key(key), data, ex=ex)
        )
        if result is not _MISS:
            logger.debug("Stored %s (ttl=%ss)", key, ex)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None):
        """
        Explicitly set a value.

        Args:
            key: Cache key (will be namespaced automatically)
            value: Value to cache
            ttl: TTL in seconds
        """
        await self.init_cache()
        await self._write(key, value, ttl)

    async def invalidate(self, *keys: str):
        """Delete keys whose underlying relation may have changed."""
        await self.init_cache()

        keys = tuple(dict.fromkeys(keys))
        if not keys or not self._redis:
            return

        namespaced = [self._key(key) for key in keys]
        result = await self._guarded(
            "DELETE", ",".join(keys), lambda: self._redis.delete(*namespaced)
        )
        if result is not _MISS:
            self.stats["invalidations"] += len(keys)
            logger.debug("Invalidated %s", ", ".join(keys))

    async def ping(self) -> bool:
        await self.init_cache()
        if not self._redis:
            return False
        result = await self._guarded("PING", "-", self._redis.ping)
        return result is not _MISS and bool(result)

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._redis:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except CACHE_ERRORS as e:
                logger.error(f"Error closing Redis: {e}")
            self._redis = None

    def get_stats(self) -> dict:
        """Get cache statistics."""
        total = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "redis": self.available,
            "hit_rate": self.stats["hits"] / total if total > 0 else 0,
        }
