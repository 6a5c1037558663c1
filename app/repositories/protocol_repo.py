"""
Protocol Repository

Data access layer for Protocol model.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.protocol import Protocol


class ProtocolRepository(BaseRepository[Protocol]):
    """Repository for Protocol model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Protocol, db)

    async def get_for_user(self, protocol_id: UUID, project_id: UUID, user_id: UUID) -> Optional[Protocol]:
        """Get a protocol of a project, only if the user owns it."""
        stmt = (
            select(self.model)
            .where(self.model.id == protocol_id)
            .where(self.model.project_id == project_id)
            .where(self.model.user_id == user_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_project_protocols(self, project_id: UUID, user_id: UUID) -> List[Protocol]:
        """A project's protocols, most recently edited first."""
        stmt = (
            select(self.model)
            .where(self.model.project_id == project_id)
            .where(self.model.user_id == user_id)
            .order_by(self.model.updated_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
