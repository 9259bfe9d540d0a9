"""Chat schemas: content parts, mentions, request and response bodies."""

from datetime import datetime
from typing import Annotated, Any, Literal, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.models.database.message import MessageRole


ToolChoice = Literal["auto", "none", "manual"]
ToolPartState = Literal["input-available", "output-available", "output-error"]


# Content parts ---------------------------------------------------------------


class TextPart(BaseModel):
    """Plain text part."""

    type: Literal["text"] = "text"
    text: str
    provider_metadata: dict[str, Any] | None = None


class ToolInvocationPart(BaseModel):
    """A tool call and, once available, its output."""

    type: Literal["tool-invocation"] = "tool-invocation"
    tool_call_id: str
    tool_name: str
    input: dict[str, Any] = Field(default_factory=dict)
    state: ToolPartState = "input-available"
    output: Any | None = None
    error_text: str | None = None
    provider_metadata: dict[str, Any] | None = None


class FilePart(BaseModel):
    """File reference part."""

    type: Literal["file"] = "file"
    url: str
    media_type: str
    filename: str | None = None


class SourceUrlPart(BaseModel):
    """Source URL reference part."""

    type: Literal["source-url"] = "source-url"
    url: str
    media_type: str | None = None
    title: str | None = None


MessagePart = Annotated[
    Union[TextPart, ToolInvocationPart, FilePart, SourceUrlPart],
    Field(discriminator="type"),
]


# Mentions --------------------------------------------------------------------


class ProjectMention(BaseModel):
    type: Literal["project"] = "project"
    project_id: str
    name: str | None = None


class McpServerMention(BaseModel):
    type: Literal["mcpServer"] = "mcpServer"
    server_name: str
    description: str | None = None


class McpToolMention(BaseModel):
    type: Literal["mcpTool"] = "mcpTool"
    server_name: str
    tool_name: str
    description: str | None = None


class WorkflowMention(BaseModel):
    type: Literal["workflow"] = "workflow"
    workflow_id: str
    name: str
    description: str | None = None


class DefaultToolMention(BaseModel):
    type: Literal["defaultTool"] = "defaultTool"
    name: str


ChatMention = Annotated[
    Union[ProjectMention, McpServerMention, McpToolMention, WorkflowMention, DefaultToolMention],
    Field(discriminator="type"),
]


# Request ---------------------------------------------------------------------


class ChatModel(BaseModel):
    """Provider/model pair chosen by the user."""

    provider: str
    model: str


class ImageToolOption(BaseModel):
    """Image generation backend requested for this turn."""

    model: Literal["openai", "google"] | None = None


class AllowedMcpServer(BaseModel):
    tools: list[str] = Field(default_factory=list)


class ChatAttachment(BaseModel):
    """File or URL attached to an outgoing message."""

    type: Literal["file", "source-url"]
    url: str
    media_type: str
    filename: str | None = None
    storage_key: str | None = None


class ChatMessageIn(BaseModel):
    """Message as sent by the client."""

    id: str
    role: Literal["user", "assistant"] = "user"
    parts: list[MessagePart] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None


class ChatApiRequest(BaseModel):
    """Body of POST /chat."""

    id: str = Field(..., description="Thread id; the thread is created on first use")
    message: ChatMessageIn
    chat_model: ChatModel | None = None
    tool_choice: ToolChoice = "auto"
    allowed_app_default_toolkit: list[str] | None = None
    allowed_mcp_servers: dict[str, AllowedMcpServer] | None = None
    image_tool: ImageToolOption | None = None
    mentions: list[ChatMention] = Field(default_factory=list)
    attachments: list[ChatAttachment] = Field(default_factory=list)


class ChatMetadata(BaseModel):
    """Metadata stored on assistant messages."""

    model_config = ConfigDict(extra="allow")

    tool_choice: ToolChoice | None = None
    tool_count: int = 0
    chat_model: ChatModel | None = None
    usage: dict[str, Any] | None = None


# Responses -------------------------------------------------------------------


class ThreadResponse(BaseModel):
    """Schema for thread response."""

    id: str
    title: str
    user_id: str
    project_id: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class ThreadListResponse(BaseModel):
    """Schema for thread list response."""

    threads: list[ThreadResponse]
    total: int


class ChatMessageResponse(BaseModel):
    """Schema for persisted message response."""

    id: str
    thread_id: str
    role: MessageRole
    parts: list[dict[str, Any]]
    metadata: dict[str, Any] | None = Field(
        None, validation_alias=AliasChoices("message_metadata", "metadata")
    )
    created_at: datetime

    class Config:
        from_attributes = True


class ThreadDetailResponse(ThreadResponse):
    """Thread with its messages."""

    messages: list[ChatMessageResponse]
