"""
Distributed per-key lock on top of redis-py's Lock (SET NX PX + token).

Circuit Breaker Pattern:
  On Redis failure the lock "fails open" to a process-local lock. For
  reservations the listing version check inside the transaction still
  rejects any stale commit, so an outage degrades throughput, not
  correctness. Message appends fall back to per-process ordering.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable

import redis.asyncio as redis
from redis.exceptions import LockError

from chalet_booking.core.logging import get_logger
from chalet_booking.core.metrics import lock_wait_latency, record_redis_failure
from chalet_booking.infrastructure.redis_client import get_redis
from chalet_booking.services.interfaces.listing_lock import ListingLock
from chalet_booking.services.interfaces.local_lock import LocalListingLock

logger = get_logger(__name__)

# Upper bound on how long a crashed holder can block a key
LOCK_LEASE_SECONDS = 30


class RedisListingLock(ListingLock):
    """
    Redis-based per-key lock; keys live under `lock:<resource>:`.

    Use when:
    - Several API workers or hosts share one database
    - Popular listings see bursts of overlapping requests
    """

    def __init__(self, resource: str = "listing"):
        self.resource = resource
        self.key_prefix = f"lock:{resource}:"
        self._fallback = LocalListingLock(resource)

    @asynccontextmanager
    async def hold(self, key: Hashable, timeout: float) -> AsyncIterator[None]:
        client = await get_redis()
        if client is None:
            async with self._fallback.hold(key, timeout):
                yield
            return

        lock = client.lock(
            f"{self.key_prefix}{key}",
            timeout=LOCK_LEASE_SECONDS,
            blocking_timeout=timeout,
        )
        started = time.perf_counter()
        try:
            acquired = await lock.acquire()
        except (redis.RedisError, OSError) as e:
            record_redis_failure()
            logger.warning("redis_lock_unavailable", resource=self.resource, key=key, error=str(e))
            async with self._fallback.hold(key, timeout):
                yield
            return

        if not acquired:
            raise self.timed_out(key, timeout)
        lock_wait_latency.labels(resource=self.resource).observe(time.perf_counter() - started)

        try:
            yield
        finally:
            try:
                await lock.release()
            except (LockError, redis.RedisError, OSError) as e:
                # Lease expired or Redis went away; the key will time out on its own
                logger.warning("redis_lock_release_failed", resource=self.resource, key=key, error=str(e))
