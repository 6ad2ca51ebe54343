"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .listing_lock import ListingLock
from .local_lock import LocalListingLock
from .message_feed import InMemoryMessageFeed, MessageFeed

__all__ = ['ListingLock', 'LocalListingLock', 'MessageFeed', 'InMemoryMessageFeed']
