"""Project file persistence with soft delete."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.database import Project, ProjectFile
from app.models.schemas.file import ProjectFileCreate, ProjectFileUpdate


def content_size(content: str) -> int:
    """Stored size: UTF-8 byte length, not character count."""
    return len(content.encode("utf-8"))


class FileRepository:
    """Soft-deleted files are invisible to every read."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _visible(self, user_id: str):
        return select(ProjectFile).where(
            ProjectFile.user_id == user_id,
            ProjectFile.is_deleted.is_(False),
        )

    async def create_file(self, user_id: str, data: ProjectFileCreate) -> ProjectFile:
        project = await self.db.execute(
            select(Project.id).where(Project.id == data.project_id, Project.user_id == user_id)
        )
        if project.scalar_one_or_none() is None:
            raise NotFoundError("Project not found or access denied")

        file = ProjectFile(
            project_id=data.project_id,
            name=data.name,
            content=data.content,
            content_type=data.content_type,
            size=content_size(data.content),
            user_id=user_id,
        )
        self.db.add(file)
        await self.db.commit()
        await self.db.refresh(file)
        return file

    async def find_files_by_project_id(self, project_id: str, user_id: str) -> tuple[list[ProjectFile], int]:
        query = self._visible(user_id).where(ProjectFile.project_id == project_id)

        total_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = total_result.scalar_one()

        result = await self.db.execute(query.order_by(ProjectFile.updated_at.desc()))
        return list(result.scalars().all()), total

    async def find_file_by_id(self, file_id: str, user_id: str) -> ProjectFile | None:
        result = await self.db.execute(self._visible(user_id).where(ProjectFile.id == file_id))
        return result.scalar_one_or_none()

    async def _get_file(self, file_id: str, user_id: str) -> ProjectFile:
        file = await self.find_file_by_id(file_id, user_id)
        if file is None:
            raise NotFoundError("File not found or access denied")
        return file

    async def update_file(self, file_id: str, user_id: str, data: ProjectFileUpdate) -> ProjectFile:
        file = await self._get_file(file_id, user_id)

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in update_data:
            file.name = update_data["name"]
        if "content" in update_data:
            file.content = update_data["content"]
            file.size = content_size(update_data["content"])
        file.updated_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(file)
        return file

    async def delete_file(self, file_id: str, user_id: str) -> None:
        """Soft delete: the row stays but is hidden from all reads."""
        file = await self._get_file(file_id, user_id)
        file.is_deleted = True
        await self.db.commit()

    async def get_project_files_for_context(self, project_id: str, user_id: str) -> list[ProjectFile]:
        """Visible files of a project, oldest first, for prompt context."""
        result = await self.db.execute(
            self._visible(user_id)
            .where(ProjectFile.project_id == project_id)
            .order_by(ProjectFile.created_at)
        )
        return list(result.scalars().all())
