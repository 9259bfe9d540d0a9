"""MCP server customization schemas."""

from pydantic import BaseModel, Field


class McpCustomizationUpdate(BaseModel):
    """Schema for saving a server customization."""

    prompt: str | None = Field(None, max_length=8000)
    tools: dict[str, str] = Field(default_factory=dict, description="Tool name to extra instructions")


class McpCustomizationResponse(BaseModel):
    """Schema for a server customization."""

    server_name: str
    prompt: str | None = None
    tools: dict[str, str] = Field(default_factory=dict)
