"""
Redis Cache Service
===================

Redis read cache for entitlement lookups with connection management,
cache operations, and invalidation utilities.

The database stays the source of truth: every operation fails open, and
nothing is read from or written to Redis when ``CACHE_ENABLED`` is off.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio import Redis

from revenuecat_mirror.config import settings

logger = logging.getLogger(__name__)

# Global Redis client instance
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """
    Initialize Redis connection pool and pre-warm a connection.

    Returns:
        Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
            socket_keepalive=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        # Pre-warm so the first webhook does not pay the handshake cost
        await _redis_client.ping()
        logger.info("Redis connection established")

    return _redis_client


async def get_redis() -> Redis:
    """Get Redis client, initializing if necessary."""
    if _redis_client is None:
        return await init_redis()

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")


class CacheManager:
    """
    Redis cache manager with common operations.

    Key naming convention:
        cache:{resource}:{identifier}

    Entitlement rows are cached for ``ENTITLEMENT_CACHE_TTL_SECONDS``
    (60s by default); webhooks invalidate them explicitly.
    """

    TTL_SHORT = 60

    @staticmethod
    async def get(key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value if present, None on miss, error or when disabled
        """
        if not settings.CACHE_ENABLED:
            return None

        try:
            client = await get_redis()
            value = await client.get(key)

            if value is None:
                return None

            return json.loads(value)
        except Exception as e:
            logger.warning("Cache get error for key %s: %s", key, e)
            return None

    @staticmethod
    async def set(
        key: str,
        value: Any,
        ttl: int = TTL_SHORT,
    ) -> bool:
        """
        Set value in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache (will be JSON serialized)
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not settings.CACHE_ENABLED:
            return False

        try:
            client = await get_redis()
            serialized = json.dumps(value, default=str)
            await client.setex(key, ttl, serialized)
            return True
        except Exception as e:
            logger.warning("Cache set error for key %s: %s", key, e)
            return False

    @staticmethod
    async def delete(*keys: str) -> int:
        """
        Delete keys from cache.

        Returns:
            Number of keys deleted
        """
        if not settings.CACHE_ENABLED or not keys:
            return 0

        try:
            client = await get_redis()
            return await client.delete(*keys)
        except Exception as e:
            logger.warning("Cache delete error for keys %s: %s", keys, e)
            return 0


# =============================================================================
# Cache Key Builders
# =============================================================================

class CacheKeys:
    """Cache key builders for consistent naming."""

    @staticmethod
    def entitlements(app_user_id: str) -> str:
        """Raw entitlement rows of a customer."""
        return f"cache:entitlements:{app_user_id}"


# =============================================================================
# Cache Invalidation Helpers
# =============================================================================

class CacheInvalidator:
    """Helpers for invalidating related cache entries."""

    @staticmethod
    async def on_customer_change(*app_user_ids: Optional[str]) -> None:
        """Invalidate caches for every customer a webhook touched."""
        keys = [CacheKeys.entitlements(user_id) for user_id in dict.fromkeys(app_user_ids) if user_id]
        await CacheManager.delete(*keys)
