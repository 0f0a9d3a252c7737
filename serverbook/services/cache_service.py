"""
Redis caching service for the region usage listing.

What we cache:
  - The region listing with live per-tier usage counts (JSON-serialized)
  - Cache key pattern: "regions:usage:{region or '*'}"

Invalidation strategy:
  - Any booking creation or status change deletes all region usage keys
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

Redis is advisory only. When it is disabled or unreachable every call
degrades to a cache miss and the listing is computed from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from serverbook.core.config import get_settings
from serverbook.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

REGION_USAGE_PREFIX = "regions:usage:"


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            # Test connection
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


def _make_region_usage_key(region: Optional[str]) -> str:
    return f"{REGION_USAGE_PREFIX}{region or '*'}"


async def get_cached_regions(region: Optional[str]) -> Optional[dict]:
    """Retrieve cached region usage listing."""
    client = await get_redis()
    if not client:
        return None

    key = _make_region_usage_key(region)
    try:
        data = await client.get(key)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_regions(region: Optional[str], data: dict) -> None:
    """Cache region usage listing with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_region_usage_key(region)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_region_cache() -> None:
    """
    Invalidate all cached region listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{REGION_USAGE_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.debug("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        return {
            "status": "connected",
            "hits": info.get("keyspace_hits", 0),
            "misses": info.get("keyspace_misses", 0),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
