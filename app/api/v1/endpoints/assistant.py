"""
Assistant Endpoints

One-off model calls that are not stored in a conversation:
- POST /projects/{project_id}/protocol-guidance
- POST /assistant/research
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.llm.gemini_client import GeminiCompletionClient, get_completion_client
from app.db.database import get_db
from app.api.deps import get_current_user
from app.models import Profile
from app.schemas.assistant import ProtocolGuidanceRequest, ResearchAssistanceRequest
from app.schemas.completion import CompletionResult
from app.services.assistant_service import (
    AssistantService,
    AssistantError,
    AssistantProjectNotFoundError,
)

router = APIRouter(tags=["Assistant"])


def get_assistant_service(
    db: AsyncSession = Depends(get_db),
    completion_client: GeminiCompletionClient = Depends(get_completion_client),
) -> AssistantService:
    return AssistantService(db, completion_client)


@router.post(
    "/projects/{project_id}/protocol-guidance",
    response_model=CompletionResult,
    summary="Protocol guidance",
    responses={
        400: {"description": "Unknown focus area"},
        404: {"description": "Project not found"},
        502: {"description": "The language model call failed"},
    }
)
async def protocol_guidance(
    project_id: UUID,
    data: ProtocolGuidanceRequest,
    current_user: Profile = Depends(get_current_user),
    service: AssistantService = Depends(get_assistant_service),
):
    """
    Advice on a review protocol.

    `focus_area` narrows the advice to one part of the protocol (PICO,
    SPIDER, inclusion, exclusion or search strategy).
    """
    try:
        return await service.protocol_guidance(project_id, current_user.id, data)
    except AssistantProjectNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AssistantError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.post(
    "/assistant/research",
    response_model=CompletionResult,
    summary="Ask the research assistant",
    responses={
        404: {"description": "Project not found"},
        502: {"description": "The language model call failed"},
    }
)
async def research_assistance(
    data: ResearchAssistanceRequest,
    current_user: Profile = Depends(get_current_user),
    service: AssistantService = Depends(get_assistant_service),
):
    """A methodology question answered outside of any conversation."""
    try:
        return await service.research_assistance(current_user.id, data)
    except AssistantProjectNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AssistantError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
