"""
Realtime message feed interface.

The feed is an optional capability: messaging works without one by polling
the database. Implementations:
- InMemoryMessageFeed: asyncio queues, single process
- RedisMessageFeed: Redis pub/sub, shared across workers
"""

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from chalet_booking.core.logging import get_logger

logger = get_logger(__name__)


class MessageFeed(ABC):
    """
    Publish/subscribe channel keyed by conversation id.
    Payloads are plain JSON-serializable dicts.
    """

    @abstractmethod
    async def publish(self, conversation_id: str, payload: dict[str, Any]) -> None:
        """Push a new-message notification. Must never raise on transport errors."""

    @abstractmethod
    def subscribe(self, conversation_id: str) -> "AsyncIterator[asyncio.Queue]":
        """Async context manager yielding a queue of payloads for one conversation."""

    async def close(self) -> None:
        pass


class InMemoryMessageFeed(MessageFeed):
    """
    Fan-out to local subscribers only.

    Use when:
    - A single API worker process
    - Tests
    """

    def __init__(self, max_queue: int = 100):
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._max_queue = max_queue

    async def publish(self, conversation_id: str, payload: dict[str, Any]) -> None:
        for queue in list(self._subscribers.get(conversation_id, ())):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                # Slow consumer; it will catch up from the database
                logger.warning("feed_queue_full", conversation_id=conversation_id)

    @asynccontextmanager
    async def subscribe(self, conversation_id: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue)
        self._subscribers[conversation_id].add(queue)
        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(conversation_id)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscribers[conversation_id]

    def subscriber_count(self, conversation_id: str) -> int:
        return len(self._subscribers.get(conversation_id, ()))
