"""
Support message. A conversation is the ordered set of messages sharing a
conversation_id; rows are only ever appended, and only `is_read` changes.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text

from chalet_booking.core.clock import utcnow
from chalet_booking.db.base import Base

SENDER_TYPES = ("customer", "team")


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(String(100), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    sender_type = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(f"sender_type IN {SENDER_TYPES}", name="check_message_sender_type"),
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, conv={self.conversation_id}, from={self.sender_type})>"
