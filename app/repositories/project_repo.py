"""
Project Repository

Data access layer for Project model.
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.repositories.base import BaseRepository
from app.models.project import Project, ProjectStatus


class ProjectRepository(BaseRepository[Project]):
    """Repository for Project model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Project, db)

    async def get_for_user(self, project_id: UUID, user_id: UUID) -> Optional[Project]:
        """Get a project only if it belongs to the user."""
        stmt = (
            select(self.model)
            .where(self.model.id == project_id)
            .where(self.model.user_id == user_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_all_for_user(
        self,
        user_id: UUID,
        status: Optional[ProjectStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Project]:
        """
        Get all projects for a specific user.

        Args:
            user_id: The owner's user ID
            status: Optional status filter
            skip: Number of records to skip (pagination)
            limit: Maximum number of records to return

        Returns:
            List of projects ordered by last activity, most recent first
        """
        stmt = select(self.model).where(self.model.user_id == user_id)

        if status is not None:
            stmt = stmt.where(self.model.status == status)

        stmt = (
            stmt.order_by(self.model.last_activity_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def touch(self, project_id: UUID) -> None:
        """Bump last_activity_at; called when anything inside the project changes."""
        project = await self.get_by_id(project_id)
        if project:
            project.last_activity_at = func.now()
            await self._commit()
            await self.db.refresh(project)
