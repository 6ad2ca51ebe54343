"""
Customer support messaging.

A conversation is every message sharing a conversation_id, ordered by
(created_at, id). Messages are only appended; the read flag is the one
mutable field. Appends to one conversation are serialized by the
conversation lock from read-max through commit, so timestamps increase in
commit order and clients can page with `since` without missing a message.

New messages are pushed through the optional MessageFeed. Watchers always
re-read the database, so a missing or lossy feed only adds latency.
"""

import asyncio
import re
import secrets
from collections import defaultdict
from datetime import datetime, timedelta
from typing import AsyncIterator, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chalet_booking.core.clock import ensure_utc, utcnow
from chalet_booking.core.config import get_settings
from chalet_booking.core.exceptions import NotAuthorized, NotFound, ValidationError
from chalet_booking.core.logging import get_logger
from chalet_booking.core.metrics import messages_sent
from chalet_booking.core.roles import Actor, is_support_team
from chalet_booking.models.message import Message
from chalet_booking.services.interfaces.listing_lock import ListingLock
from chalet_booking.services.interfaces.message_feed import MessageFeed
from chalet_booking.services.strategy_factory import get_conversation_lock

logger = get_logger(__name__)
settings = get_settings()

_CONVERSATION_ID = re.compile(r"^conv_(\d+)_[0-9a-f]+$")
_TICK = timedelta(microseconds=1)


def new_conversation_id(user_id: int) -> str:
    return f"conv_{user_id}_{secrets.token_hex(6)}"


def open_conversation(actor: Actor) -> str:
    if is_support_team(actor):
        raise NotAuthorized("The support team replies to conversations; customers open them")
    return new_conversation_id(actor.user_id)


def _embedded_owner(conversation_id: str) -> Optional[int]:
    match = _CONVERSATION_ID.match(conversation_id)
    return int(match.group(1)) if match else None


def sender_type_for(actor: Actor) -> str:
    return "team" if is_support_team(actor) else "customer"


async def _conversation_owner(db: AsyncSession, conversation_id: str) -> Optional[int]:
    """The customer a conversation belongs to: first customer sender, else the id's embedded user."""
    result = await db.execute(
        select(Message.sender_id)
        .where(Message.conversation_id == conversation_id, Message.sender_type == "customer")
        .order_by(Message.created_at.asc(), Message.id.asc())
        .limit(1)
    )
    owner = result.scalar_one_or_none()
    return owner if owner is not None else _embedded_owner(conversation_id)


async def _conversation_exists(db: AsyncSession, conversation_id: str) -> bool:
    result = await db.execute(select(Message.id).where(Message.conversation_id == conversation_id).limit(1))
    return result.scalar_one_or_none() is not None


async def _authorize(db: AsyncSession, conversation_id: str, actor: Actor, writing: bool = False) -> None:
    if is_support_team(actor):
        if not await _conversation_exists(db, conversation_id):
            raise NotFound(f"Conversation {conversation_id} not found", conversation_id=conversation_id)
        return

    owner = await _conversation_owner(db, conversation_id)
    if owner is None:
        raise ValidationError(f"Malformed conversation id: {conversation_id}")
    if owner != actor.user_id:
        # Same answer for "not yours" and "does not exist"
        raise NotFound(f"Conversation {conversation_id} not found", conversation_id=conversation_id)
    if not writing and not await _conversation_exists(db, conversation_id):
        raise NotFound(f"Conversation {conversation_id} not found", conversation_id=conversation_id)


async def _next_timestamp(db: AsyncSession, conversation_id: str) -> datetime:
    result = await db.execute(
        select(func.max(Message.created_at)).where(Message.conversation_id == conversation_id)
    )
    last = ensure_utc(result.scalar_one_or_none())
    now = utcnow()
    if last is not None and now <= last:
        return last + _TICK
    return now


def message_payload(message: Message) -> dict:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "sender_type": message.sender_type,
        "message": message.message,
        "is_read": message.is_read,
        "created_at": ensure_utc(message.created_at).isoformat(),
    }


async def send_message(
    db: AsyncSession,
    conversation_id: str,
    actor: Actor,
    text: str,
    feed: Optional[MessageFeed] = None,
    lock: Optional[ListingLock] = None,
) -> Message:
    """Append a message. Commits before notifying subscribers so they can read it."""
    text = text.strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    await _authorize(db, conversation_id, actor, writing=True)
    lock = lock or get_conversation_lock()

    sender_type = sender_type_for(actor)
    async with lock.hold(conversation_id, settings.MESSAGE_LOCK_TIMEOUT):
        message = Message(
            conversation_id=conversation_id,
            sender_id=actor.user_id,
            sender_type=sender_type,
            message=text,
            is_read=False,
            created_at=await _next_timestamp(db, conversation_id),
        )
        db.add(message)
        await db.flush()
        await db.commit()
    await db.refresh(message)

    messages_sent.labels(sender_type=sender_type).inc()
    logger.info(
        "message_sent",
        message_id=message.id,
        conversation_id=conversation_id,
        sender_type=sender_type,
    )
    if feed is not None:
        await feed.publish(conversation_id, message_payload(message))
    return message


async def list_conversations(db: AsyncSession, actor: Actor) -> list[dict]:
    """
    Conversation summaries, most recently active first.

    Customers see conversations they started; unread counts team replies.
    The support team sees everything; unread counts customer messages.
    """
    query = select(Message)
    if not is_support_team(actor):
        mine = (
            select(Message.conversation_id)
            .where(Message.sender_id == actor.user_id, Message.sender_type == "customer")
            .distinct()
        )
        query = query.where(Message.conversation_id.in_(mine))
    result = await db.execute(query.order_by(Message.created_at.asc(), Message.id.asc()))

    grouped: dict[str, list[Message]] = defaultdict(list)
    for message in result.scalars().all():
        grouped[message.conversation_id].append(message)

    incoming = "customer" if is_support_team(actor) else "team"
    summaries = []
    for conversation_id, messages in grouped.items():
        last = messages[-1]
        summaries.append({
            "id": conversation_id,
            "last_message": last,
            "unread_count": sum(1 for m in messages if not m.is_read and m.sender_type == incoming),
            "message_count": len(messages),
        })
    summaries.sort(key=lambda s: (ensure_utc(s["last_message"].created_at), s["last_message"].id), reverse=True)
    return summaries


async def get_conversation(
    db: AsyncSession,
    conversation_id: str,
    actor: Actor,
    since: Optional[datetime] = None,
) -> list[Message]:
    await _authorize(db, conversation_id, actor)
    query = select(Message).where(Message.conversation_id == conversation_id)
    if since is not None:
        query = query.where(Message.created_at > ensure_utc(since))
    result = await db.execute(query.order_by(Message.created_at.asc(), Message.id.asc()))
    return list(result.scalars().all())


async def mark_read(db: AsyncSession, conversation_id: str, actor: Actor) -> int:
    """Mark the other party's messages as read. Returns how many changed."""
    await _authorize(db, conversation_id, actor)
    incoming = "customer" if is_support_team(actor) else "team"
    result = await db.execute(
        update(Message)
        .where(
            Message.conversation_id == conversation_id,
            Message.sender_type == incoming,
            Message.is_read.is_(False),
        )
        .values(is_read=True)
    )
    return result.rowcount or 0


async def watch_conversation(
    session_factory: async_sessionmaker[AsyncSession],
    conversation_id: str,
    actor: Actor,
    since: Optional[datetime] = None,
    feed: Optional[MessageFeed] = None,
    poll_interval: Optional[float] = None,
) -> AsyncIterator[Message]:
    """
    Yield messages as they arrive.

    With a feed, a notification wakes the watcher early; without one it
    polls every `poll_interval` seconds. Either way the database is the
    source of what gets yielded.
    """
    poll_interval = poll_interval if poll_interval is not None else settings.MESSAGE_POLL_INTERVAL

    async with session_factory() as session:
        backlog = await get_conversation(session, conversation_id, actor, since)
    last_id = 0
    for message in backlog:
        last_id = max(last_id, message.id)
        yield message

    async def fetch_new() -> list[Message]:
        async with session_factory() as session:
            result = await session.execute(
                select(Message)
                .where(Message.conversation_id == conversation_id, Message.id > last_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
            )
            return list(result.scalars().all())

    if feed is None:
        while True:
            await asyncio.sleep(poll_interval)
            for message in await fetch_new():
                last_id = max(last_id, message.id)
                yield message

    async with feed.subscribe(conversation_id) as queue:
        while True:
            try:
                await asyncio.wait_for(queue.get(), timeout=poll_interval)
            except asyncio.TimeoutError:
                # No notification this tick; re-read anyway in case one was dropped
                pass
            for message in await fetch_new():
                last_id = max(last_id, message.id)
                yield message
