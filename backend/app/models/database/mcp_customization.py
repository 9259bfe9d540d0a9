"""MCP server customization database model."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON, UniqueConstraint

from app.core.storage.database import Base


class McpServerCustomization(Base):
    """Per-user extra instructions for an MCP server and its tools."""

    __tablename__ = "mcp_server_customizations"
    __table_args__ = (UniqueConstraint("user_id", "server_name"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    server_name = Column(String(255), nullable=False)
    prompt = Column(Text, nullable=True)
    tool_prompts = Column(JSON, default=dict, nullable=False)  # tool name -> prompt
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
