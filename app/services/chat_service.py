"""
Chat Service

Persistence operations behind the conversation store:
1. Conversation CRUD (scoped to the signed-in user)
2. Message create / update / delete
3. Project-wide cleanup

The service never talks to the language model; the store orchestrates
completion calls and uses this service to persist both sides.
"""

import logging
from typing import Optional, List, Dict, Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.conversation import DEFAULT_CONVERSATION_TITLE
from app.models.message import MessageRole
from app.repositories.conversation_repo import ConversationRepository
from app.repositories.message_repo import MessageRepository
from app.repositories.project_repo import ProjectRepository
from app.schemas.conversation import (
    ConversationCreate,
    ConversationResponse,
    ConversationWithMessages,
    MessageResponse,
)

logger = logging.getLogger(__name__)


class ChatServiceError(Exception):
    """Base exception for chat service errors."""
    pass


class NotAuthenticatedError(ChatServiceError):
    """No signed-in user for the request."""
    pass


class ConversationNotFoundError(ChatServiceError):
    """Conversation not found or access denied."""
    pass


class MessageNotFoundError(ChatServiceError):
    """Message not found or access denied."""
    pass


class ChatService:
    """
    Service for conversation and message persistence.

    Every call is made on behalf of `user_id`; rows owned by anyone else
    behave as if they did not exist.
    """

    def __init__(self, db: AsyncSession, user_id: Optional[UUID]):
        self.db = db
        self.user_id = user_id
        self.conversation_repo = ConversationRepository(db)
        self.message_repo = MessageRepository(db)
        self.project_repo = ProjectRepository(db)

    def _require_user(self) -> UUID:
        if self.user_id is None:
            raise NotAuthenticatedError("User not authenticated")
        return self.user_id

    # ============================================================
    # CONVERSATION MANAGEMENT
    # ============================================================

    async def create_conversation(self, data: ConversationCreate) -> ConversationResponse:
        """
        Create a new conversation in one of the user's projects.

        Raises:
            ChatServiceError: the project does not exist or is not the user's
        """
        user_id = self._require_user()

        project = await self.project_repo.get_for_user(data.project_id, user_id)
        if not project:
            raise ChatServiceError("Project not found")

        conversation = await self.conversation_repo.create(
            user_id=user_id,
            project_id=data.project_id,
            title=data.title or DEFAULT_CONVERSATION_TITLE,
            context=data.context
        )
        await self.project_repo.touch(data.project_id)

        logger.info(f"Conversation {conversation.id} created in project {data.project_id}")
        return ConversationResponse.model_validate(conversation)

    async def get_conversations(
        self,
        project_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[ConversationResponse]:
        """List the user's conversations, most recently active first."""
        user_id = self._require_user()
        conversations = await self.conversation_repo.get_user_conversations(
            user_id=user_id,
            project_id=project_id,
            skip=skip,
            limit=limit
        )
        return [ConversationResponse.model_validate(c) for c in conversations]

    async def count_conversations(self, project_id: Optional[UUID] = None) -> int:
        user_id = self._require_user()
        return await self.conversation_repo.count_user_conversations(user_id, project_id)

    async def get_conversation(self, conversation_id: UUID) -> ConversationResponse:
        user_id = self._require_user()
        conversation = await self.conversation_repo.get_for_user(conversation_id, user_id)

        if not conversation:
            raise ConversationNotFoundError("Conversation not found")

        return ConversationResponse.model_validate(conversation)

    async def get_conversation_with_messages(self, conversation_id: UUID) -> ConversationWithMessages:
        """Get a conversation with its full message history, oldest first."""
        user_id = self._require_user()
        conversation = await self.conversation_repo.get_with_messages(conversation_id, user_id)

        if not conversation:
            raise ConversationNotFoundError("Conversation not found")

        return ConversationWithMessages.model_validate(conversation)

    async def update_conversation(
        self,
        conversation_id: UUID,
        title: Optional[str] = None,
        context: Optional[str] = None
    ) -> ConversationResponse:
        """Rename a conversation or replace its stored context."""
        user_id = self._require_user()
        conversation = await self.conversation_repo.get_for_user(conversation_id, user_id)

        if not conversation:
            raise ConversationNotFoundError("Conversation not found")

        update_data = {}
        if title is not None:
            update_data["title"] = title
        if context is not None:
            update_data["context"] = context

        if update_data:
            conversation = await self.conversation_repo.apply(conversation, **update_data)

        return ConversationResponse.model_validate(conversation)

    async def delete_conversation(self, conversation_id: UUID) -> bool:
        """Delete a conversation; its messages go with it."""
        user_id = self._require_user()
        conversation = await self.conversation_repo.get_for_user(conversation_id, user_id)

        if not conversation:
            raise ConversationNotFoundError("Conversation not found")

        deleted = await self.conversation_repo.delete(conversation_id)
        logger.info(f"Conversation {conversation_id} deleted")
        return deleted

    async def delete_all_conversations_for_project(self, project_id: UUID) -> int:
        user_id = self._require_user()
        count = await self.conversation_repo.delete_for_project(project_id, user_id)
        logger.info(f"Deleted {count} conversations from project {project_id}")
        return count

    # ============================================================
    # MESSAGES
    # ============================================================

    async def create_message(
        self,
        conversation_id: UUID,
        role: MessageRole,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> MessageResponse:
        """
        Persist a message and bump the conversation's updated_at.

        Content may be empty (streaming placeholders start that way).
        """
        user_id = self._require_user()
        conversation = await self.conversation_repo.get_for_user(conversation_id, user_id)

        if not conversation:
            raise ConversationNotFoundError("Conversation not found")

        message = await self.message_repo.create_message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            metadata=metadata
        )
        await self.conversation_repo.touch(conversation)

        return MessageResponse.model_validate(message)

    async def update_message(
        self,
        message_id: UUID,
        content: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> MessageResponse:
        """
        Update a message in place.

        Metadata is replaced wholesale, not merged.
        """
        user_id = self._require_user()
        message = await self.message_repo.get_for_user(message_id, user_id)

        if not message:
            raise MessageNotFoundError("Message not found")

        update_data = {}
        if content is not None:
            update_data["content"] = content
        if metadata is not None:
            update_data["meta"] = metadata

        if update_data:
            message = await self.message_repo.apply(message, **update_data)

        return MessageResponse.model_validate(message)

    async def get_messages(self, conversation_id: UUID) -> List[MessageResponse]:
        user_id = self._require_user()
        conversation = await self.conversation_repo.get_for_user(conversation_id, user_id)

        if not conversation:
            raise ConversationNotFoundError("Conversation not found")

        messages = await self.message_repo.get_conversation_messages(conversation_id)
        return [MessageResponse.model_validate(m) for m in messages]

    async def delete_message(self, message_id: UUID) -> bool:
        user_id = self._require_user()
        message = await self.message_repo.get_for_user(message_id, user_id)

        if not message:
            raise MessageNotFoundError("Message not found")

        return await self.message_repo.delete(message_id)
