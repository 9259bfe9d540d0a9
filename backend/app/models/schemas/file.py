"""Project file schemas for API validation."""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from app.models.database.file import FileContentType

# Maximum file content size: 10MB
MAX_FILE_SIZE = 10 * 1024 * 1024

MAX_NAME_LENGTH = 255


class ProjectFileCreate(BaseModel):
    """Schema for creating a project file."""

    project_id: str
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    content: str = Field("", max_length=MAX_FILE_SIZE)
    content_type: FileContentType = FileContentType.MARKDOWN

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class ProjectFileUpdate(BaseModel):
    """Schema for updating a project file."""

    name: str | None = Field(None, min_length=1, max_length=MAX_NAME_LENGTH)
    content: str | None = Field(None, max_length=MAX_FILE_SIZE)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class ProjectFileResponse(BaseModel):
    """Schema for project file response."""

    id: str
    project_id: str
    name: str
    content: str
    content_type: FileContentType
    size: int
    user_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectFileListResponse(BaseModel):
    """Schema for file list response."""

    files: list[ProjectFileResponse]
    total: int


class StoredObjectResponse(BaseModel):
    """Schema for an uploaded attachment in object storage."""

    key: str
    url: str
    filename: str
    content_type: str
    size: int
    uploaded_at: datetime
