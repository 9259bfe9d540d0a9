"""Project file API routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.errors import NotFoundError, ValidationFailedError
from app.core.storage.database import get_db
from app.models.database import User
from app.models.schemas.file import (
    ProjectFileCreate,
    ProjectFileListResponse,
    ProjectFileResponse,
    ProjectFileUpdate,
)
from app.repositories import FileRepository

router = APIRouter(prefix="/files", tags=["files"])


@router.get("", response_model=ProjectFileListResponse)
async def list_files(
    project_id: str | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List a project's files, most recently updated first."""
    if not project_id:
        raise ValidationFailedError("project_id is required")

    files, total = await FileRepository(db).find_files_by_project_id(project_id, user.id)
    return ProjectFileListResponse(
        files=[ProjectFileResponse.model_validate(f) for f in files],
        total=total,
    )


@router.post("", response_model=ProjectFileResponse, status_code=status.HTTP_201_CREATED)
async def create_file(
    file_data: ProjectFileCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create a text file in a project the user owns."""
    file = await FileRepository(db).create_file(user.id, file_data)
    return ProjectFileResponse.model_validate(file)


@router.get("/{file_id}", response_model=ProjectFileResponse)
async def get_file(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    file = await FileRepository(db).find_file_by_id(file_id, user.id)
    if file is None:
        raise NotFoundError("File not found")
    return ProjectFileResponse.model_validate(file)


@router.put("/{file_id}", response_model=ProjectFileResponse)
async def update_file(
    file_id: str,
    file_data: ProjectFileUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Rename a file or replace its content; size follows the content."""
    file = await FileRepository(db).update_file(file_id, user.id, file_data)
    return ProjectFileResponse.model_validate(file)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Soft delete a file."""
    await FileRepository(db).delete_file(file_id, user.id)
