"""
Pydantic schemas for customer support messaging.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)


class MessageResponse(BaseModel):
    id: int
    conversation_id: str
    sender_id: int
    sender_type: str
    message: str
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversationSummary(BaseModel):
    id: str
    last_message: Optional[MessageResponse]
    unread_count: int
    message_count: int


class ConversationDetail(BaseModel):
    id: str
    messages: list[MessageResponse]


class NewConversation(BaseModel):
    conversation_id: str


class MarkReadResponse(BaseModel):
    conversation_id: str
    marked: int
