"""
Project Endpoints
HTTP API for review project management.
"""

from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.database import get_db
from app.api.deps import get_current_user
from app.models import Profile, ProjectStatus
from app.schemas.project import ProjectCreate, ProjectUpdate, ProjectResponse, ProjectStats
from app.services.project_service import ProjectService

# ============================================================
# Router Setup
# ============================================================
router = APIRouter(tags=["Projects"])

# ============================================================
# Create Project
# ============================================================

@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Project created successfully"},
        401: {"description": "Not authenticated"},
    }
)
async def create_project(
    project_data: ProjectCreate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a new review project.

    The project will be owned by the authenticated user and starts as a draft.
    """
    project_service = ProjectService(db)
    return await project_service.create_project(project_data, current_user.id)


# ============================================================
# List Projects
# ============================================================
@router.get(
    "",
    response_model=List[ProjectResponse],
    responses={
        200: {"description": "List of user's projects"},
        401: {"description": "Not authenticated"},
    }
)
async def list_projects(
    status_filter: Optional[ProjectStatus] = Query(None, alias="status", description="Only projects in this status"),
    skip: int = Query(0, ge=0, description="Number of projects to skip"),
    limit: int = Query(20, ge=1, le=100, description="Max projects to return"),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get all projects for the authenticated user.

    Results are paginated and ordered by most recent activity.
    """
    project_service = ProjectService(db)
    return await project_service.get_user_projects(current_user.id, status_filter, skip, limit)


# ============================================================
# Get Single Project
# ============================================================
@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    responses={
        200: {"description": "Project details"},
        401: {"description": "Not authenticated"},
        404: {"description": "Project not found"},
    }
)
async def get_project(
    project_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get a specific project by ID.

    Only returns the project if owned by the authenticated user.
    """
    project_service = ProjectService(db)
    try:
        return await project_service.get_project(project_id, current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ============================================================
# Project Stats
# ============================================================
@router.get(
    "/{project_id}/stats",
    response_model=ProjectStats,
    responses={
        200: {"description": "Screening counts"},
        404: {"description": "Project not found"},
    }
)
async def get_project_stats(
    project_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Total, pending, included, excluded and maybe article counts."""
    project_service = ProjectService(db)
    try:
        return await project_service.get_project_stats(project_id, current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ============================================================
# Update Project
# ============================================================
@router.patch(
    "/{project_id}",
    response_model=ProjectResponse,
    responses={
        200: {"description": "Project updated successfully"},
        401: {"description": "Not authenticated"},
        404: {"description": "Project not found"},
    }
)
async def update_project(
    project_id: UUID,
    project_data: ProjectUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a project.

    Only the owner can update the project.
    Only provided fields will be updated.
    """
    project_service = ProjectService(db)
    try:
        return await project_service.update_project(project_id, project_data, current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ============================================================
# Delete Project
# ============================================================
@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        204: {"description": "Project deleted successfully"},
        401: {"description": "Not authenticated"},
        404: {"description": "Project not found"},
    }
)
async def delete_project(
    project_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a project.

    This permanently removes the project with its conversations, articles
    and export history.
    """
    project_service = ProjectService(db)
    try:
        await project_service.delete_project(project_id, current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return None
