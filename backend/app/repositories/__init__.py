"""Repositories enforcing per-user row ownership."""

from app.repositories.chat_repository import ChatRepository
from app.repositories.file_repository import FileRepository
from app.repositories.mcp_customization_repository import McpCustomizationRepository
from app.repositories.project_repository import ProjectRepository

__all__ = [
    "ChatRepository",
    "FileRepository",
    "McpCustomizationRepository",
    "ProjectRepository",
]
