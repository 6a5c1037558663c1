"""
Protocol Endpoints

Review protocols inside a project:
- GET    /projects/{project_id}/protocols
- POST   /projects/{project_id}/protocols
- GET    /projects/{project_id}/protocols/{protocol_id}
- PATCH  /projects/{project_id}/protocols/{protocol_id}
- DELETE /projects/{project_id}/protocols/{protocol_id}
- POST   /projects/{project_id}/protocols/{protocol_id}/lock
- POST   /projects/{project_id}/protocols/{protocol_id}/unlock
- POST   /projects/{project_id}/protocols/{protocol_id}/duplicate
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.api.deps import get_current_user
from app.models import Profile
from app.schemas.protocol import ProtocolCreate, ProtocolDuplicate, ProtocolResponse, ProtocolUpdate
from app.services.protocol_service import (
    ProtocolService,
    ProtocolServiceError,
    ProtocolLockedError,
)

router = APIRouter(tags=["Protocols"])


def _http_error(error: ProtocolServiceError) -> HTTPException:
    if isinstance(error, ProtocolLockedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))


@router.get(
    "/{project_id}/protocols",
    response_model=List[ProtocolResponse],
    responses={404: {"description": "Project not found"}}
)
async def list_protocols(
    project_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """A project's protocols, most recently edited first."""
    try:
        return await ProtocolService(db).list_protocols(project_id, current_user.id)
    except ProtocolServiceError as e:
        raise _http_error(e)


@router.post(
    "/{project_id}/protocols",
    response_model=ProtocolResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Project not found"}}
)
async def create_protocol(
    project_id: UUID,
    data: ProtocolCreate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await ProtocolService(db).create_protocol(project_id, current_user.id, data)
    except ProtocolServiceError as e:
        raise _http_error(e)


@router.get(
    "/{project_id}/protocols/{protocol_id}",
    response_model=ProtocolResponse,
    responses={404: {"description": "Protocol not found"}}
)
async def get_protocol(
    project_id: UUID,
    protocol_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await ProtocolService(db).get_protocol(project_id, protocol_id, current_user.id)
    except ProtocolServiceError as e:
        raise _http_error(e)


@router.patch(
    "/{project_id}/protocols/{protocol_id}",
    response_model=ProtocolResponse,
    responses={
        404: {"description": "Protocol not found"},
        409: {"description": "Protocol is locked"},
    }
)
async def update_protocol(
    project_id: UUID,
    protocol_id: UUID,
    data: ProtocolUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Edit an unlocked protocol.

    Changes to the research question, framework, criteria or search
    strategy start a new version.
    """
    try:
        return await ProtocolService(db).update_protocol(project_id, protocol_id, current_user.id, data)
    except ProtocolServiceError as e:
        raise _http_error(e)


@router.delete(
    "/{project_id}/protocols/{protocol_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"description": "Protocol not found"},
        409: {"description": "Protocol is locked"},
    }
)
async def delete_protocol(
    project_id: UUID,
    protocol_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        await ProtocolService(db).delete_protocol(project_id, protocol_id, current_user.id)
    except ProtocolServiceError as e:
        raise _http_error(e)


@router.post(
    "/{project_id}/protocols/{protocol_id}/lock",
    response_model=ProtocolResponse,
    responses={404: {"description": "Protocol not found"}}
)
async def lock_protocol(
    project_id: UUID,
    protocol_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Freeze the protocol; it becomes active."""
    try:
        return await ProtocolService(db).lock_protocol(project_id, protocol_id, current_user.id)
    except ProtocolServiceError as e:
        raise _http_error(e)


@router.post(
    "/{project_id}/protocols/{protocol_id}/unlock",
    response_model=ProtocolResponse,
    responses={404: {"description": "Protocol not found"}}
)
async def unlock_protocol(
    project_id: UUID,
    protocol_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await ProtocolService(db).unlock_protocol(project_id, protocol_id, current_user.id)
    except ProtocolServiceError as e:
        raise _http_error(e)


@router.post(
    "/{project_id}/protocols/{protocol_id}/duplicate",
    response_model=ProtocolResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Protocol not found"}}
)
async def duplicate_protocol(
    project_id: UUID,
    protocol_id: UUID,
    data: ProtocolDuplicate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Unlocked copy at version 1."""
    try:
        return await ProtocolService(db).duplicate_protocol(
            project_id, protocol_id, current_user.id, title=data.title
        )
    except ProtocolServiceError as e:
        raise _http_error(e)
