"""
Customer support messaging endpoints.

Clients either poll `GET /conversations/{id}?since=...` or open the
websocket, which pushes new messages as they arrive (realtime feed when
configured, database polling otherwise).
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.exceptions import DomainError
from chalet_booking.core.logging import get_logger
from chalet_booking.core.roles import Actor
from chalet_booking.core.security import decode_actor, get_current_actor
from chalet_booking.db.session import get_db, get_session_factory
from chalet_booking.schemas.message import (
    ConversationDetail,
    ConversationSummary,
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
    NewConversation,
)
from chalet_booking.services import message_service
from chalet_booking.services.strategy_factory import get_message_feed

logger = get_logger(__name__)
router = APIRouter(prefix="/conversations", tags=["Messaging"])


@router.post("/", response_model=NewConversation, status_code=status.HTTP_201_CREATED)
async def start_conversation(actor: Actor = Depends(get_current_actor)):
    """Allocate a conversation id. It exists once the first message is sent."""
    return NewConversation(conversation_id=message_service.open_conversation(actor))


@router.get("/", response_model=list[ConversationSummary])
async def list_conversations(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await message_service.list_conversations(db, actor)


@router.get("/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(
    conversation_id: str,
    since: Optional[datetime] = Query(None, description="Only messages created after this instant"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    messages = await message_service.get_conversation(db, conversation_id, actor, since)
    return ConversationDetail(id=conversation_id, messages=messages)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: str,
    body: MessageCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await message_service.send_message(
        db, conversation_id, actor, body.message, feed=get_message_feed()
    )


@router.post("/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_read(
    conversation_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    marked = await message_service.mark_read(db, conversation_id, actor)
    return MarkReadResponse(conversation_id=conversation_id, marked=marked)


@router.websocket("/{conversation_id}/ws")
async def conversation_stream(
    websocket: WebSocket,
    conversation_id: str,
    token: str = Query(...),
    since: Optional[datetime] = Query(None),
):
    """Stream messages as JSON. Browsers cannot set headers here, so the JWT is a query parameter."""
    try:
        actor = decode_actor(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    try:
        async for message in message_service.watch_conversation(
            get_session_factory(),
            conversation_id,
            actor,
            since=since,
            feed=get_message_feed(),
        ):
            await websocket.send_json(message_service.message_payload(message))
    except WebSocketDisconnect:
        logger.info("conversation_stream_closed", conversation_id=conversation_id)
    except DomainError as e:
        logger.info("conversation_stream_rejected", conversation_id=conversation_id, error=e.kind)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
