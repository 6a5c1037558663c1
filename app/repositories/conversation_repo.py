"""
Conversation Repository

Data access layer for Conversation model.
Every lookup is scoped to the owning user.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func, desc, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.repositories.base import BaseRepository
from app.models.conversation import Conversation


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for Conversation model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Conversation, db)

    async def get_for_user(
        self,
        conversation_id: UUID,
        user_id: UUID
    ) -> Optional[Conversation]:
        """Get a conversation only if the user owns it."""
        stmt = (
            select(self.model)
            .where(self.model.id == conversation_id)
            .where(self.model.user_id == user_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_with_messages(
        self,
        conversation_id: UUID,
        user_id: UUID
    ) -> Optional[Conversation]:
        """
        Get conversation with all messages loaded.

        Uses eager loading to fetch messages in one query; the relationship
        orders them by created_at ascending.
        """
        stmt = (
            select(self.model)
            .options(selectinload(self.model.messages))
            .where(self.model.id == conversation_id)
            .where(self.model.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_conversations(
        self,
        user_id: UUID,
        project_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Conversation]:
        """
        Get conversations for a user.

        Args:
            user_id: User's ID
            project_id: Optional filter by project (None = all)
            skip: Pagination offset
            limit: Maximum results

        Returns:
            List ordered by most recent activity
        """
        stmt = (
            select(self.model)
            .where(self.model.user_id == user_id)
        )

        if project_id is not None:
            stmt = stmt.where(self.model.project_id == project_id)

        stmt = stmt.order_by(desc(self.model.updated_at))
        stmt = stmt.offset(skip).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_user_conversations(
        self,
        user_id: UUID,
        project_id: Optional[UUID] = None
    ) -> int:
        """Count conversations for a user."""
        stmt = select(func.count(self.model.id)).where(
            self.model.user_id == user_id
        )

        if project_id is not None:
            stmt = stmt.where(self.model.project_id == project_id)

        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def delete_for_project(self, project_id: UUID, user_id: UUID) -> int:
        """Delete every conversation the user has in a project."""
        stmt = (
            delete(self.model)
            .where(self.model.project_id == project_id)
            .where(self.model.user_id == user_id)
        )
        result = await self._execute_write(stmt)
        return result.rowcount or 0

    async def touch(self, conversation: Conversation) -> Conversation:
        """
        Update conversation's updated_at timestamp.

        Called when a new message is added so the list stays ordered by activity.
        """
        conversation.updated_at = func.now()
        await self._commit()
        await self.db.refresh(conversation)
        return conversation
