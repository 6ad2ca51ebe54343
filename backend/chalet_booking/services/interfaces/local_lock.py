"""
In-process per-key lock built on asyncio.Lock.
"""

import asyncio
import time
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable

from chalet_booking.core.metrics import lock_wait_latency
from chalet_booking.services.interfaces.listing_lock import ListingLock


class LocalListingLock(ListingLock):
    """
    One asyncio.Lock per key.

    Locks live in a WeakValueDictionary so idle keys do not accumulate
    entries; a lock stays alive while any coroutine holds or awaits it.

    Use when:
    - A single API worker process
    - Tests and local development
    """

    def __init__(self, resource: str = "listing"):
        self.resource = resource
        self._locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: Hashable, timeout: float) -> AsyncIterator[None]:
        lock = self._lock_for(key)
        started = time.perf_counter()
        try:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            raise self.timed_out(key, timeout)
        lock_wait_latency.labels(resource=self.resource).observe(time.perf_counter() - started)
        try:
            yield
        finally:
            lock.release()
