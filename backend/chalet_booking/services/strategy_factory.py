"""
Strategy factory.
Configures which lock and message feed implementations to use.
"""

from typing import Optional

from chalet_booking.core.config import get_settings
from chalet_booking.services.interfaces.listing_lock import ListingLock
from chalet_booking.services.interfaces.local_lock import LocalListingLock
from chalet_booking.services.interfaces.message_feed import InMemoryMessageFeed, MessageFeed


def get_lock_strategy(resource: str = "listing") -> ListingLock:
    """
    Get configured per-key lock for `resource` (listing, conversation).

    Strategy selection:
    - local: LocalListingLock (single worker, tests)
    - redis: RedisListingLock (multiple workers)

    Overridden via the LOCK_STRATEGY env var.
    """
    strategy = get_settings().LOCK_STRATEGY

    if strategy == 'redis':
        from chalet_booking.infrastructure.redis_lock import RedisListingLock

        return RedisListingLock(resource)
    return LocalListingLock(resource)


def get_feed_strategy() -> Optional[MessageFeed]:
    """
    Get configured realtime message feed, or None to rely on polling.

    Overridden via the MESSAGE_FEED env var (none, memory, redis).
    """
    strategy = get_settings().MESSAGE_FEED

    if strategy == 'redis':
        from chalet_booking.infrastructure.redis_feed import RedisMessageFeed

        return RedisMessageFeed()
    if strategy == 'memory':
        return InMemoryMessageFeed()
    return None


# Singleton instances
_lock: Optional[ListingLock] = None
_conversation_lock: Optional[ListingLock] = None
_feed: Optional[MessageFeed] = None
_feed_resolved = False


def get_listing_lock() -> ListingLock:
    """Get listing lock singleton."""
    global _lock
    if _lock is None:
        _lock = get_lock_strategy()
    return _lock


def get_conversation_lock() -> ListingLock:
    """Get the lock singleton that orders message appends per conversation."""
    global _conversation_lock
    if _conversation_lock is None:
        _conversation_lock = get_lock_strategy("conversation")
    return _conversation_lock


def get_message_feed() -> Optional[MessageFeed]:
    """Get message feed singleton (None when realtime push is disabled)."""
    global _feed, _feed_resolved
    if not _feed_resolved:
        _feed = get_feed_strategy()
        _feed_resolved = True
    return _feed


async def close_strategies() -> None:
    global _lock, _conversation_lock, _feed, _feed_resolved
    for lock in (_lock, _conversation_lock):
        if lock is not None:
            await lock.close()
    if _feed is not None:
        await _feed.close()
    _lock = None
    _conversation_lock = None
    _feed = None
    _feed_resolved = False
