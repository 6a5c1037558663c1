"""
Message Repository

Data access layer for Message model.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.conversation import Conversation
from app.models.message import Message, MessageRole


class MessageRepository(BaseRepository[Message]):
    """Repository for Message model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Message, db)

    async def get_for_user(self, message_id: UUID, user_id: UUID) -> Optional[Message]:
        """Get a message only if it sits in a conversation the user owns."""
        stmt = (
            select(self.model)
            .join(Conversation, Conversation.id == self.model.conversation_id)
            .where(self.model.id == message_id)
            .where(Conversation.user_id == user_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_conversation_messages(
        self,
        conversation_id: UUID,
        limit: Optional[int] = None
    ) -> List[Message]:
        """
        Get messages for a conversation.

        Args:
            conversation_id: Conversation ID
            limit: Maximum messages (None = all)

        Returns:
            Messages ordered by created_at ascending
        """
        stmt = (
            select(self.model)
            .where(self.model.conversation_id == conversation_id)
            .order_by(self.model.created_at.asc())
        )

        if limit:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_message(
        self,
        conversation_id: UUID,
        role: MessageRole,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Message:
        """
        Create a new message.

        Args:
            conversation_id: Parent conversation
            role: Message role (user, assistant, system)
            content: Message text (may be empty for a streaming placeholder)
            metadata: Free-form JSON stored with the message

        Returns:
            Created message
        """
        return await self.create(
            conversation_id=conversation_id,
            role=role,
            content=content,
            meta=metadata or {}
        )
