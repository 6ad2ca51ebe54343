"""
Message feed over Redis pub/sub, one channel per conversation.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as redis

from chalet_booking.core.logging import get_logger
from chalet_booking.core.metrics import record_redis_failure
from chalet_booking.infrastructure.redis_client import get_redis
from chalet_booking.services.interfaces.message_feed import MessageFeed

logger = get_logger(__name__)


class RedisMessageFeed(MessageFeed):
    """
    Publishes JSON payloads on `messages:<conversation_id>`.

    Subscribers get a queue fed by a background reader task. If Redis is
    unreachable the queue simply stays empty and callers fall back to
    polling the database.
    """

    def __init__(self, channel_prefix: str = "messages:"):
        self.channel_prefix = channel_prefix

    def _channel(self, conversation_id: str) -> str:
        return f"{self.channel_prefix}{conversation_id}"

    async def publish(self, conversation_id: str, payload: dict[str, Any]) -> None:
        client = await get_redis()
        if client is None:
            return
        try:
            await client.publish(self._channel(conversation_id), json.dumps(payload, default=str))
        except (redis.RedisError, OSError) as e:
            record_redis_failure()
            logger.warning("feed_publish_failed", conversation_id=conversation_id, error=str(e))

    @asynccontextmanager
    async def subscribe(self, conversation_id: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=100)
        client = await get_redis()
        if client is None:
            yield queue
            return

        pubsub = client.pubsub()
        reader = None
        try:
            await pubsub.subscribe(self._channel(conversation_id))
            reader = asyncio.create_task(self._pump(pubsub, queue, conversation_id))
        except (redis.RedisError, OSError) as e:
            record_redis_failure()
            logger.warning("feed_subscribe_failed", conversation_id=conversation_id, error=str(e))

        try:
            yield queue
        finally:
            if reader is not None:
                reader.cancel()
                try:
                    await reader
                except asyncio.CancelledError:
                    pass
            try:
                await pubsub.aclose()
            except (redis.RedisError, OSError) as e:
                logger.debug("feed_unsubscribe_failed", conversation_id=conversation_id, error=str(e))

    async def _pump(self, pubsub, queue: asyncio.Queue, conversation_id: str) -> None:
        try:
            async for item in pubsub.listen():
                if item.get("type") != "message":
                    continue
                try:
                    queue.put_nowait(json.loads(item["data"]))
                except asyncio.QueueFull:
                    logger.warning("feed_queue_full", conversation_id=conversation_id)
        except (redis.RedisError, OSError) as e:
            record_redis_failure()
            logger.warning("feed_reader_stopped", conversation_id=conversation_id, error=str(e))
