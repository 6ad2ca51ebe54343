"""
Per-key mutual exclusion interface.

Reservation commits are serialized per listing: the coordinator holds the
lock for the whole conflict-check-plus-commit unit. Message appends are
serialized per conversation the same way, so timestamps are handed out in
commit order. Implementations:
- LocalListingLock: asyncio locks, single process
- RedisListingLock: distributed lock shared by every API worker

For reservations the listing `version` column remains the authority. A
lock implementation that degrades (Redis outage) only costs throughput,
never correctness.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Hashable

from chalet_booking.core.exceptions import OperationTimeout
from chalet_booking.core.logging import get_logger
from chalet_booking.core.metrics import lock_timeouts

logger = get_logger(__name__)


class ListingLock(ABC):
    """
    Interface for per-key locks.

    `resource` names what the keys identify ("listing", "conversation");
    it labels metrics, logs and timeout errors.
    """

    resource: str = "listing"

    @abstractmethod
    def hold(self, key: Hashable, timeout: float) -> AbstractAsyncContextManager[None]:
        """
        Hold the lock for `key` for the duration of the `async with` block.

        Args:
            key: Listing id or conversation id being mutated
            timeout: Seconds to wait for the lock

        Raises:
            OperationTimeout: the lock was not acquired in time
        """

    def timed_out(self, key: Hashable, timeout: float) -> OperationTimeout:
        lock_timeouts.labels(resource=self.resource).inc()
        logger.warning("lock_timeout", resource=self.resource, key=key, timeout=timeout)
        return OperationTimeout(
            f"Timed out after {timeout}s waiting for {self.resource} {key}",
            **{f"{self.resource}_id": key},
        )

    async def close(self) -> None:
        """Release any underlying resources."""
