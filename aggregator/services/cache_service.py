"""
Redis Cache Service

Cache collaborator for live catalog queries and quota counters.
Falls back to a process-local TTL cache when Redis is unavailable.
"""

import json
import time
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis

from ..config import get_settings
from ..core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

# Redis client singleton
_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Get or create the async Redis client (connects lazily)."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    if not settings.redis_url:
        logger.debug("redis_not_configured")
        return None

    try:
        _redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
        )
        return _redis_client
    except Exception as e:
        logger.warning("redis_client_init_failed", error=str(e))
        _redis_client = None
        return None


class CacheService:
    """
    Key/value cache with TTLs.

    Cache Keys:
    - catalog:list:{category_id}:{page} → category page (TTL: cache_ttl_seconds)
    - catalog:home:{section} → home section
    - catalog:detail:{provider}:{item_id} → one provider item
    - catalog:search:{keyword} → broadcast search hits
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client if redis_client is not None else get_redis_client()
        # key -> (expires_at, value)
        self._memory_cache: Dict[str, Tuple[float, str]] = {}

    def _is_available(self) -> bool:
        return self.redis is not None

    async def ping(self) -> bool:
        """Check the Redis connection; drop to memory-only mode if it is down."""
        if not self._is_available():
            return False
        try:
            await self.redis.ping()
            logger.info("redis_connected")
            return True
        except Exception as e:
            logger.warning("redis_connection_failed", error=str(e))
            self.redis = None
            return False

    # =========================================================================
    # GENERIC CACHE OPERATIONS
    # =========================================================================

    async def get(self, key: str) -> Optional[str]:
        """Get value from cache."""
        if self._is_available():
            try:
                return await self.redis.get(key)
            except Exception as e:
                logger.warning("cache_get_failed", key=key, error=str(e))

        cached = self._memory_cache.get(key)
        if cached is None:
            return None
        expires_at, value = cached
        if expires_at <= time.monotonic():
            self._memory_cache.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int = 300) -> bool:
        """Set value in cache with TTL."""
        if self._is_available():
            try:
                await self.redis.setex(key, ttl_seconds, value)
                return True
            except Exception as e:
                logger.warning("cache_set_failed", key=key, error=str(e))

        self._memory_cache[key] = (time.monotonic() + ttl_seconds, value)
        return True

    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if self._is_available():
            try:
                await self.redis.delete(key)
            except Exception as e:
                logger.warning("cache_delete_failed", key=key, error=str(e))

        self._memory_cache.pop(key, None)
        return True

    # =========================================================================
    # JSON HELPERS
    # =========================================================================

    async def get_json(self, key: str) -> Optional[Any]:
        data = await self.get(key)
        if data is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return json.loads(data)

    async def set_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        ttl = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        return await self.set(key, json.dumps(value, ensure_ascii=False), ttl)

    async def close(self):
        if self._is_available():
            await self.redis.aclose()


# Singleton instance
_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get singleton CacheService instance."""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service
