"""
Redis client shared by caching, distributed locks and the message feed.
Separated from business logic; every caller must cope with `None`.
"""

from typing import Optional

import redis.asyncio as redis

from chalet_booking.core.config import get_settings
from chalet_booking.core.logging import get_logger
from chalet_booking.core.metrics import record_redis_failure, record_redis_recovered

logger = get_logger(__name__)
settings = get_settings()


class RedisClient:
    """Singleton async Redis client with connection pooling."""

    _instance: Optional[redis.Redis] = None

    @classmethod
    async def get_client(cls) -> Optional[redis.Redis]:
        """Get or create the client. Returns None if Redis is disabled or unreachable."""
        if not settings.REDIS_ENABLED:
            return None

        if cls._instance is None:
            client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            try:
                await client.ping()
            except (redis.RedisError, OSError) as e:
                record_redis_failure()
                logger.error("redis_connection_failed", url=settings.REDIS_URL, error=str(e))
                await client.aclose()
                return None
            record_redis_recovered()
            logger.info("redis_connected", url=settings.REDIS_URL)
            cls._instance = client
        return cls._instance

    @classmethod
    async def close(cls) -> None:
        """Close Redis connection."""
        if cls._instance is not None:
            await cls._instance.aclose()
            cls._instance = None


async def get_redis() -> Optional[redis.Redis]:
    """Get Redis client instance."""
    return await RedisClient.get_client()


async def close_redis() -> None:
    await RedisClient.close()
