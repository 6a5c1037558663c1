"""
Protocol Service

Review protocols of a project. Locking freezes a protocol once screening
starts against it; a locked protocol cannot be edited or deleted until it
is unlocked again.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.protocol import Protocol, ProtocolStatus
from app.repositories.project_repo import ProjectRepository
from app.repositories.protocol_repo import ProtocolRepository
from app.schemas.protocol import ProtocolCreate, ProtocolUpdate, SIGNIFICANT_FIELDS

logger = logging.getLogger(__name__)

# Carried over by duplicate_protocol; lock state and version start fresh
_COPIED_FIELDS = (
    "description", "research_question", "framework_type",
    "population", "intervention", "comparison", "outcome",
    "sample", "phenomenon", "design", "evaluation", "research_type",
    "inclusion_criteria", "exclusion_criteria", "search_strategy",
    "databases", "keywords", "date_range", "study_types",
    "status", "ai_generated", "ai_guidance_used",
)


class ProtocolServiceError(Exception):
    """Base exception for protocol operations."""
    pass


class ProtocolNotFoundError(ProtocolServiceError):
    pass


class ProtocolLockedError(ProtocolServiceError):
    """The protocol is locked and must be unlocked first."""
    pass


class ProtocolService:
    """Service class for protocol operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.protocol_repo = ProtocolRepository(db)
        self.project_repo = ProjectRepository(db)

    async def _verify_project(self, project_id: UUID, user_id: UUID) -> None:
        project = await self.project_repo.get_for_user(project_id, user_id)
        if not project:
            raise ProtocolServiceError("Project not found")

    # ============================================================
    # Read
    # ============================================================

    async def list_protocols(self, project_id: UUID, user_id: UUID) -> List[Protocol]:
        await self._verify_project(project_id, user_id)
        return await self.protocol_repo.get_project_protocols(project_id, user_id)

    async def get_protocol(self, project_id: UUID, protocol_id: UUID, user_id: UUID) -> Protocol:
        """
        Raises:
            ProtocolNotFoundError: no such protocol in a project the user owns
        """
        protocol = await self.protocol_repo.get_for_user(protocol_id, project_id, user_id)
        if not protocol:
            raise ProtocolNotFoundError("Protocol not found")
        return protocol

    # ============================================================
    # Write
    # ============================================================

    async def create_protocol(self, project_id: UUID, user_id: UUID, data: ProtocolCreate) -> Protocol:
        """New protocols start as unlocked drafts at version 1."""
        await self._verify_project(project_id, user_id)

        protocol = await self.protocol_repo.create(
            project_id=project_id,
            user_id=user_id,
            status=ProtocolStatus.DRAFT,
            is_locked=False,
            version=1,
            **data.model_dump()
        )
        await self.project_repo.touch(project_id)

        logger.info(f"Protocol {protocol.id} created in project {project_id}")
        return protocol

    async def update_protocol(
        self,
        project_id: UUID,
        protocol_id: UUID,
        user_id: UUID,
        data: ProtocolUpdate
    ) -> Protocol:
        """
        Apply a partial update.

        Changing the research question, framework, eligibility criteria or
        search strategy bumps the version.

        Raises:
            ProtocolNotFoundError
            ProtocolLockedError
        """
        protocol = await self.get_protocol(project_id, protocol_id, user_id)
        if protocol.is_locked:
            raise ProtocolLockedError("Cannot update locked protocol")

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return protocol

        if any(name in changes for name in SIGNIFICANT_FIELDS):
            changes["version"] = (protocol.version or 1) + 1

        protocol = await self.protocol_repo.apply(protocol, **changes)
        await self.project_repo.touch(project_id)
        return protocol

    async def delete_protocol(self, project_id: UUID, protocol_id: UUID, user_id: UUID) -> bool:
        protocol = await self.get_protocol(project_id, protocol_id, user_id)
        if protocol.is_locked:
            raise ProtocolLockedError("Cannot delete locked protocol")

        deleted = await self.protocol_repo.delete(protocol.id)
        logger.info(f"Protocol {protocol_id} deleted from project {project_id}")
        return deleted

    async def lock_protocol(self, project_id: UUID, protocol_id: UUID, user_id: UUID) -> Protocol:
        """Freeze the protocol and mark it active."""
        protocol = await self.get_protocol(project_id, protocol_id, user_id)
        if protocol.is_locked:
            return protocol

        return await self.protocol_repo.apply(
            protocol,
            is_locked=True,
            locked_at=datetime.now(timezone.utc),
            status=ProtocolStatus.ACTIVE
        )

    async def unlock_protocol(self, project_id: UUID, protocol_id: UUID, user_id: UUID) -> Protocol:
        protocol = await self.get_protocol(project_id, protocol_id, user_id)
        if not protocol.is_locked:
            return protocol

        return await self.protocol_repo.apply(protocol, is_locked=False, locked_at=None)

    async def duplicate_protocol(
        self,
        project_id: UUID,
        protocol_id: UUID,
        user_id: UUID,
        title: Optional[str] = None
    ) -> Protocol:
        """Unlocked version-1 copy, titled "Copy of ..." unless a title is given."""
        original = await self.get_protocol(project_id, protocol_id, user_id)

        copy = await self.protocol_repo.create(
            project_id=project_id,
            user_id=user_id,
            title=title or f"Copy of {original.title}"[:200],
            is_locked=False,
            locked_at=None,
            version=1,
            **{name: getattr(original, name) for name in _COPIED_FIELDS}
        )
        await self.project_repo.touch(project_id)
        return copy
