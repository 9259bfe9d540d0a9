"""Project schemas for API validation."""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from app.models.database.project import DeliverableStatus


class ProjectCreate(BaseModel):
    """Schema for creating a project."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    tech_stack: list[str] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class ProjectUpdate(BaseModel):
    """Schema for updating a project."""

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    tech_stack: list[str] | None = None
    system_prompt: str | None = None
    is_archived: bool | None = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class VersionCreate(BaseModel):
    """Schema for creating a project version."""

    name: str = Field(..., min_length=1, max_length=50)
    description: str | None = Field(None, max_length=500)


class VersionUpdate(BaseModel):
    """Schema for updating a project version."""

    name: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = Field(None, max_length=500)


class DeliverableCreate(BaseModel):
    """Schema for creating a deliverable."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)


class DeliverableUpdate(BaseModel):
    """Schema for updating a deliverable."""

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)


class DeliverableStatusUpdate(BaseModel):
    """Schema for changing deliverable status."""

    status: DeliverableStatus


class DeliverableResponse(BaseModel):
    """Schema for deliverable response."""

    id: str
    version_id: str
    name: str
    description: str | None
    status: DeliverableStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VersionResponse(BaseModel):
    """Schema for version response."""

    id: str
    project_id: str
    name: str
    description: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VersionWithDeliverablesResponse(VersionResponse):
    """Version with its deliverables."""

    deliverables: list[DeliverableResponse] = Field(default_factory=list)


class ProjectResponse(BaseModel):
    """Schema for project response."""

    id: str
    name: str
    description: str | None
    tech_stack: list[str]
    system_prompt: str | None
    user_id: str
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectWithVersionsResponse(ProjectResponse):
    """Project with versions and deliverables."""

    versions: list[VersionWithDeliverablesResponse] = Field(default_factory=list)


class ProjectListResponse(BaseModel):
    """Schema for project list response."""

    projects: list[ProjectResponse]
    total: int
