"""
Assistant Service

Project-aware wrappers around the completion client's research helpers.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.llm.gemini_client import GeminiCompletionClient
from app.ai.prompts.chat_prompts import FOCUS_AREAS
from app.models.project import Project
from app.repositories.project_repo import ProjectRepository
from app.schemas.assistant import ProtocolGuidanceRequest, ResearchAssistanceRequest
from app.schemas.completion import CompletionResult

logger = logging.getLogger(__name__)


class AssistantError(Exception):
    """The model call failed."""
    pass


class AssistantProjectNotFoundError(Exception):
    pass


class AssistantService:
    """Service class for one-off assistant calls."""

    def __init__(self, db: AsyncSession, completion_client: GeminiCompletionClient):
        self.db = db
        self.completion_client = completion_client
        self.project_repo = ProjectRepository(db)

    async def _project(self, project_id: UUID, user_id: UUID) -> Project:
        project = await self.project_repo.get_for_user(project_id, user_id)
        if not project:
            raise AssistantProjectNotFoundError("Project not found")
        return project

    async def protocol_guidance(
        self,
        project_id: UUID,
        user_id: UUID,
        request: ProtocolGuidanceRequest
    ) -> CompletionResult:
        """
        Guidance on a project's protocol.

        Raises:
            AssistantProjectNotFoundError
            ValueError: unknown focus area
            AssistantError: the model call failed
        """
        await self._project(project_id, user_id)

        if request.focus_area and request.focus_area not in FOCUS_AREAS:
            raise ValueError(f"Unknown focus area: {request.focus_area}")

        try:
            return await self.completion_client.get_protocol_guidance(
                request.research_question,
                current_protocol=request.current_protocol,
                focus_area=request.focus_area
            )
        except Exception as e:
            logger.error(
                f"Protocol guidance failed: {e}",
                extra={"action": "protocol-guidance", "metadata": {"project_id": str(project_id)}}
            )
            raise AssistantError(str(e) or "Failed to get protocol guidance")

    async def research_assistance(
        self,
        user_id: UUID,
        request: ResearchAssistanceRequest
    ) -> CompletionResult:
        project: Optional[Project] = None
        if request.project_id is not None:
            project = await self._project(request.project_id, user_id)

        try:
            return await self.completion_client.get_research_assistance(
                request.query,
                project_title=project.title if project else None,
                current_stage=project.current_stage if project else None,
                relevant_documents=request.relevant_documents or None
            )
        except Exception as e:
            logger.error(
                f"Research assistance failed: {e}",
                extra={"action": "research-assistance", "metadata": {"user_id": str(user_id)}}
            )
            raise AssistantError(str(e) or "Failed to get research assistance")
