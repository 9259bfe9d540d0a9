"""Database models."""

from app.models.database.user import User, UserSession
from app.models.database.project import Project, ProjectVersion, Deliverable, DeliverableStatus
from app.models.database.thread import ChatThread
from app.models.database.message import ChatMessage, MessageRole
from app.models.database.file import ProjectFile, FileContentType
from app.models.database.mcp_customization import McpServerCustomization

__all__ = [
    "User",
    "UserSession",
    "Project",
    "ProjectVersion",
    "Deliverable",
    "DeliverableStatus",
    "ChatThread",
    "ChatMessage",
    "MessageRole",
    "ProjectFile",
    "FileContentType",
    "McpServerCustomization",
]
