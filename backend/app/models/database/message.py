"""Chat message database model."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship
import enum

from app.core.storage.database import Base


class MessageRole(str, enum.Enum):
    """Message role enum."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(Base):
    """Message model.

    ``parts`` holds the serialized content parts (text, tool-invocation, file,
    source-url). Parts are never diffed: an update replaces the whole list.
    """

    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    thread_id = Column(
        String(36), ForeignKey("chat_threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(Enum(MessageRole, values_callable=lambda e: [m.value for m in e]), nullable=False)
    parts = Column(JSON, default=list, nullable=False)
    message_metadata = Column(JSON, nullable=True)  # tool choice, usage, modality
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    thread = relationship("ChatThread", back_populates="messages")
