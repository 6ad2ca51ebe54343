"""
Redis caching service for public listing search pages.

CACHING STRATEGY
================

What we cache:
  - Public listing search responses (paginated, JSON-serialized)
  - Cache key pattern: "listings:list:<sorted query parameters>"

Why:
  - Browsing listings is by far the most frequent read
  - Display reads may be stale; only the reservation path needs fresh data

Invalidation strategy:
  - On listing create/update/activate/deactivate: delete all list keys
  - On booking create/cancel: delete all list keys (date-filtered searches change)
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

  Keys share the "listings:list:" prefix so we can SCAN and delete them.

Why NOT cache availability for a single listing:
  - The reservation coordinator always reads the database under the listing lock
  - A stale calendar is acceptable, but it is cheap enough to query directly
"""

import json
from typing import Optional

import redis.asyncio as redis

from chalet_booking.core.config import get_settings
from chalet_booking.core.logging import get_logger
from chalet_booking.core.metrics import record_cache_operation, record_redis_failure
from chalet_booking.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

LIST_KEY_PREFIX = "listings:list:"
INVALIDATION_BATCH = 100


def _make_listing_list_key(query_key: str) -> str:
    return f"{LIST_KEY_PREFIX}{query_key}"


async def get_cached_listings(query_key: str) -> Optional[dict]:
    """Retrieve cached listing search response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_listing_list_key(query_key)
    try:
        data = await client.get(key)
        if data:
            record_cache_operation("get", hit=True)
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        record_cache_operation("get", hit=False)
        logger.debug("cache_miss", key=key)
    except (redis.RedisError, OSError) as e:
        record_redis_failure()
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_listings(query_key: str, data: dict) -> None:
    """Cache listing search response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_listing_list_key(query_key)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set")
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except (redis.RedisError, OSError) as e:
        record_redis_failure()
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_listing_cache() -> None:
    """
    Drop every cached search page.
    SCANs the prefix and UNLINKs in batches so Redis never blocks on a large delete.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        batch: list[str] = []
        async for key in client.scan_iter(match=f"{LIST_KEY_PREFIX}*", count=INVALIDATION_BATCH):
            batch.append(key)
            if len(batch) >= INVALIDATION_BATCH:
                deleted += await client.unlink(*batch)
                batch = []
        if batch:
            deleted += await client.unlink(*batch)
        record_cache_operation("invalidate")
        logger.info("cache_invalidated", keys_deleted=deleted)
    except (redis.RedisError, OSError) as e:
        record_redis_failure()
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keyspace = await client.info("keyspace")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
            "keys": keyspace,
        }
    except (redis.RedisError, OSError) as e:
        return {"status": "error", "error": str(e)}
