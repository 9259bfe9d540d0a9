"""Project, version and deliverable persistence.

Rows owned by another user are reported exactly like missing rows so that
ids of other tenants cannot be probed.
"""

import logging

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import NotFoundError, ValidationFailedError
from app.models.database import Deliverable, DeliverableStatus, Project, ProjectVersion
from app.models.schemas.project import (
    DeliverableCreate,
    DeliverableUpdate,
    ProjectCreate,
    ProjectUpdate,
    VersionCreate,
    VersionUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_VERSION_NAME = "V1"


def _apply_update(row, data: BaseModel, required: tuple[str, ...]) -> None:
    """Copy the fields present in an update; NOT NULL columns refuse an explicit null."""
    values = data.model_dump(exclude_unset=True)
    for field in required:
        if field in values and values[field] is None:
            raise ValidationFailedError(f"{field} cannot be null")
    for field, value in values.items():
        setattr(row, field, value)


class ProjectRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Projects ---------------------------------------------------------------

    async def create_project(self, user_id: str, data: ProjectCreate) -> Project:
        """Create a project together with its default "V1" version in one transaction."""
        project = Project(
            name=data.name,
            description=data.description,
            tech_stack=data.tech_stack or [],
            user_id=user_id,
        )
        try:
            self.db.add(project)
            await self.db.flush()
            self.db.add(ProjectVersion(project_id=project.id, name=DEFAULT_VERSION_NAME))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(project)
        logger.info(f"Created project {project.id} for user {user_id}")
        return project

    async def find_projects_by_user_id(
        self, user_id: str, archived: bool | None = None
    ) -> tuple[list[Project], int]:
        query = select(Project).where(Project.user_id == user_id)
        if archived is not None:
            query = query.where(Project.is_archived == archived)

        total_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = total_result.scalar_one()

        result = await self.db.execute(query.order_by(Project.created_at.desc()))
        return list(result.scalars().all()), total

    async def find_project_by_id(self, project_id: str, user_id: str) -> Project | None:
        """Project with versions (creation order) and their deliverables, or None."""
        result = await self.db.execute(
            select(Project)
            .where(Project.id == project_id, Project.user_id == user_id)
            .options(selectinload(Project.versions).selectinload(ProjectVersion.deliverables))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_owned_project(self, project_id: str, user_id: str) -> Project:
        result = await self.db.execute(
            select(Project).where(Project.id == project_id, Project.user_id == user_id)
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project not found or access denied")
        return project

    async def update_project(self, project_id: str, user_id: str, data: ProjectUpdate) -> Project:
        project = await self._get_owned_project(project_id, user_id)

        _apply_update(project, data, required=("name", "tech_stack", "is_archived"))

        await self.db.commit()
        await self.db.refresh(project)
        return project

    async def _set_archived(self, project_id: str, user_id: str, archived: bool) -> Project:
        project = await self._get_owned_project(project_id, user_id)
        project.is_archived = archived
        await self.db.commit()
        await self.db.refresh(project)
        return project

    async def archive_project(self, project_id: str, user_id: str) -> Project:
        return await self._set_archived(project_id, user_id, True)

    async def unarchive_project(self, project_id: str, user_id: str) -> Project:
        return await self._set_archived(project_id, user_id, False)

    async def delete_project(self, project_id: str, user_id: str) -> None:
        """Delete a project; versions and deliverables go with it."""
        project = await self._get_owned_project(project_id, user_id)
        await self.db.delete(project)
        await self.db.commit()

    # Versions ---------------------------------------------------------------

    async def _get_owned_version(self, version_id: str, user_id: str) -> ProjectVersion:
        result = await self.db.execute(
            select(ProjectVersion)
            .join(Project, ProjectVersion.project_id == Project.id)
            .where(ProjectVersion.id == version_id, Project.user_id == user_id)
        )
        version = result.scalar_one_or_none()
        if version is None:
            raise NotFoundError("Version not found or access denied")
        return version

    async def create_version(self, project_id: str, user_id: str, data: VersionCreate) -> ProjectVersion:
        await self._get_owned_project(project_id, user_id)

        version = ProjectVersion(project_id=project_id, name=data.name, description=data.description)
        self.db.add(version)
        await self.db.commit()
        await self.db.refresh(version)
        return version

    async def update_version(self, version_id: str, user_id: str, data: VersionUpdate) -> ProjectVersion:
        version = await self._get_owned_version(version_id, user_id)

        _apply_update(version, data, required=("name",))

        await self.db.commit()
        await self.db.refresh(version)
        return version

    async def delete_version(self, version_id: str, user_id: str) -> None:
        version = await self._get_owned_version(version_id, user_id)
        remaining = await self.db.scalar(
            select(func.count()).select_from(ProjectVersion).where(ProjectVersion.project_id == version.project_id)
        )
        if remaining <= 1:
            raise ValidationFailedError("A project must keep at least one version")
        await self.db.delete(version)
        await self.db.commit()

    # Deliverables -----------------------------------------------------------

    async def _get_owned_deliverable(self, deliverable_id: str, user_id: str) -> Deliverable:
        result = await self.db.execute(
            select(Deliverable)
            .join(ProjectVersion, Deliverable.version_id == ProjectVersion.id)
            .join(Project, ProjectVersion.project_id == Project.id)
            .where(Deliverable.id == deliverable_id, Project.user_id == user_id)
        )
        deliverable = result.scalar_one_or_none()
        if deliverable is None:
            raise NotFoundError("Deliverable not found or access denied")
        return deliverable

    async def create_deliverable(self, version_id: str, user_id: str, data: DeliverableCreate) -> Deliverable:
        await self._get_owned_version(version_id, user_id)

        deliverable = Deliverable(version_id=version_id, name=data.name, description=data.description)
        self.db.add(deliverable)
        await self.db.commit()
        await self.db.refresh(deliverable)
        return deliverable

    async def update_deliverable(self, deliverable_id: str, user_id: str, data: DeliverableUpdate) -> Deliverable:
        deliverable = await self._get_owned_deliverable(deliverable_id, user_id)

        _apply_update(deliverable, data, required=("name",))

        await self.db.commit()
        await self.db.refresh(deliverable)
        return deliverable

    async def update_deliverable_status(
        self, deliverable_id: str, user_id: str, status: DeliverableStatus
    ) -> Deliverable:
        deliverable = await self._get_owned_deliverable(deliverable_id, user_id)
        deliverable.status = status
        await self.db.commit()
        await self.db.refresh(deliverable)
        return deliverable

    async def delete_deliverable(self, deliverable_id: str, user_id: str) -> None:
        deliverable = await self._get_owned_deliverable(deliverable_id, user_id)
        await self.db.delete(deliverable)
        await self.db.commit()
