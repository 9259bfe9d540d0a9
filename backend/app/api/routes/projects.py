"""Project, version and deliverable API routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.errors import NotFoundError
from app.core.storage.database import get_db
from app.models.database import User
from app.models.schemas.project import (
    DeliverableCreate,
    DeliverableResponse,
    DeliverableStatusUpdate,
    DeliverableUpdate,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
    ProjectWithVersionsResponse,
    VersionCreate,
    VersionResponse,
    VersionUpdate,
)
from app.repositories import ProjectRepository

router = APIRouter(tags=["projects"])


# Project endpoints
@router.get("/projects", response_model=ProjectListResponse)
async def list_projects(
    archived: bool | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the user's projects, optionally filtered by archive state."""
    projects, total = await ProjectRepository(db).find_projects_by_user_id(user.id, archived=archived)
    return ProjectListResponse(
        projects=[ProjectResponse.model_validate(p) for p in projects],
        total=total,
    )


@router.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create a project with its default version."""
    project = await ProjectRepository(db).create_project(user.id, project_data)
    return ProjectResponse.model_validate(project)


@router.get("/projects/{project_id}", response_model=ProjectWithVersionsResponse)
async def get_project(
    project_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get a project with versions and deliverables."""
    project = await ProjectRepository(db).find_project_by_id(project_id, user.id)
    if project is None:
        raise NotFoundError("Project not found")
    return ProjectWithVersionsResponse.model_validate(project)


@router.put("/projects/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    project_data: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Update a project."""
    project = await ProjectRepository(db).update_project(project_id, user.id, project_data)
    return ProjectResponse.model_validate(project)


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Delete a project with its versions and deliverables."""
    await ProjectRepository(db).delete_project(project_id, user.id)


@router.post("/projects/{project_id}/archive", response_model=ProjectResponse)
async def archive_project(
    project_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project = await ProjectRepository(db).archive_project(project_id, user.id)
    return ProjectResponse.model_validate(project)


@router.post("/projects/{project_id}/unarchive", response_model=ProjectResponse)
async def unarchive_project(
    project_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project = await ProjectRepository(db).unarchive_project(project_id, user.id)
    return ProjectResponse.model_validate(project)


# Version endpoints
@router.post(
    "/projects/{project_id}/versions",
    response_model=VersionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_version(
    project_id: str,
    version_data: VersionCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Add a version to a project."""
    version = await ProjectRepository(db).create_version(project_id, user.id, version_data)
    return VersionResponse.model_validate(version)


@router.put("/versions/{version_id}", response_model=VersionResponse)
async def update_version(
    version_id: str,
    version_data: VersionUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    version = await ProjectRepository(db).update_version(version_id, user.id, version_data)
    return VersionResponse.model_validate(version)


@router.delete("/versions/{version_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_version(
    version_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await ProjectRepository(db).delete_version(version_id, user.id)


# Deliverable endpoints
@router.post(
    "/versions/{version_id}/deliverables",
    response_model=DeliverableResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_deliverable(
    version_id: str,
    deliverable_data: DeliverableCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Add a deliverable (status "not-started") to a version."""
    deliverable = await ProjectRepository(db).create_deliverable(version_id, user.id, deliverable_data)
    return DeliverableResponse.model_validate(deliverable)


@router.put("/deliverables/{deliverable_id}", response_model=DeliverableResponse)
async def update_deliverable(
    deliverable_id: str,
    deliverable_data: DeliverableUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    deliverable = await ProjectRepository(db).update_deliverable(deliverable_id, user.id, deliverable_data)
    return DeliverableResponse.model_validate(deliverable)


@router.patch("/deliverables/{deliverable_id}/status", response_model=DeliverableResponse)
async def update_deliverable_status(
    deliverable_id: str,
    status_data: DeliverableStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    deliverable = await ProjectRepository(db).update_deliverable_status(
        deliverable_id, user.id, status_data.status
    )
    return DeliverableResponse.model_validate(deliverable)


@router.delete("/deliverables/{deliverable_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deliverable(
    deliverable_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await ProjectRepository(db).delete_deliverable(deliverable_id, user.id)
