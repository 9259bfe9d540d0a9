"""Project file database model."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, Integer, Text, Boolean
from sqlalchemy.orm import relationship
import enum

from app.core.storage.database import Base


class FileContentType(str, enum.Enum):
    """File content type enum."""

    MARKDOWN = "markdown"
    TEXT = "text"


class ProjectFile(Base):
    """Text document attached to a project. Soft-deleted rows stay in the table."""

    __tablename__ = "project_files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    content_type = Column(
        Enum(FileContentType, values_callable=lambda e: [m.value for m in e]),
        default=FileContentType.MARKDOWN,
        nullable=False,
    )
    size = Column(Integer, nullable=False, default=0)  # UTF-8 byte length of content
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    project = relationship("Project", back_populates="files")
