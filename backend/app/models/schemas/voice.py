"""Voice chat schemas."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID
from pydantic import BaseModel, Field

from app.models.schemas.chat import ChatMention, ChatModel, ToolChoice


class VoiceMessageMetadata(BaseModel):
    """Metadata for a persisted voice turn."""

    modality: Literal["voice"] = "voice"
    voice_model: str | None = None
    voice_voice: str | None = None
    voice_language: str | None = None
    transcription_confidence: float | None = None
    chat_model: ChatModel | None = None
    usage: Any | None = None
    tool_choice: ToolChoice | None = None
    tool_count: int | None = None


class VoiceMessageRequest(BaseModel):
    """Body of POST /chat/voice-message."""

    thread_id: UUID
    role: Literal["user", "assistant"]
    content: str
    parts: list[dict[str, Any]] | None = None
    metadata: VoiceMessageMetadata | None = None


class VoiceMessageSaved(BaseModel):
    id: str
    created_at: datetime


class VoiceMessageResponse(BaseModel):
    success: bool = True
    message: VoiceMessageSaved


class RealtimeSessionRequest(BaseModel):
    """Body of POST /chat/openai-realtime."""

    model: str = "gpt-4o-realtime-preview"
    voice: str = "ash"
    mentions: list[ChatMention] = Field(default_factory=list)


class ThreadMessagesResponse(BaseModel):
    """Messages of a thread, optionally filtered by modality."""

    success: bool = True
    thread_id: str
    messages: list[dict[str, Any]]
    count: int
