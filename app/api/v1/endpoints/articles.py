"""
Article Endpoints

Studies inside a project:
- GET   /projects/{project_id}/articles
- POST  /projects/{project_id}/articles
- GET   /projects/{project_id}/articles/duplicates
- PATCH /projects/{project_id}/articles/{article_id}/screening
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.api.deps import get_current_user
from app.models import Profile, ArticleStatus, ScreeningDecision
from app.schemas.article import ArticleCreate, ArticleResponse, DuplicateGroup, ScreeningUpdate
from app.services.article_service import (
    ArticleService,
    ArticleServiceError,
    ArticleNotFoundError,
    DuplicateArticleError,
)
from app.services.deduplication import DEFAULT_THRESHOLD

router = APIRouter(tags=["Articles"])


@router.get(
    "/{project_id}/articles",
    response_model=List[ArticleResponse],
    responses={404: {"description": "Project not found"}}
)
async def list_articles(
    project_id: UUID,
    status_filter: Optional[ArticleStatus] = Query(None, alias="status"),
    screening_decision: Optional[ScreeningDecision] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List a project's articles, newest first."""
    service = ArticleService(db)
    try:
        return await service.list_articles(
            project_id,
            current_user.id,
            status=status_filter,
            screening_decision=screening_decision,
            skip=skip,
            limit=limit
        )
    except ArticleServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/{project_id}/articles",
    response_model=ArticleResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Project not found"},
        409: {"description": "Article already imported"},
    }
)
async def create_article(
    project_id: UUID,
    data: ArticleCreate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Import one article by hand."""
    service = ArticleService(db)
    try:
        return await service.create_article(project_id, current_user.id, data)
    except DuplicateArticleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ArticleServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get(
    "/{project_id}/articles/duplicates",
    response_model=List[DuplicateGroup],
    responses={404: {"description": "Project not found"}}
)
async def find_duplicates(
    project_id: UUID,
    threshold: float = Query(DEFAULT_THRESHOLD, ge=0.0, le=1.0, description="Minimum similarity for two articles to be grouped"),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Groups of articles that look like the same study."""
    service = ArticleService(db)
    try:
        return await service.find_duplicates(project_id, current_user.id, threshold)
    except ArticleServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch(
    "/{project_id}/articles/{article_id}/screening",
    response_model=ArticleResponse,
    responses={404: {"description": "Project or article not found"}}
)
async def update_screening(
    project_id: UUID,
    article_id: UUID,
    data: ScreeningUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Record an include / exclude / maybe decision."""
    service = ArticleService(db)
    try:
        return await service.update_screening(project_id, article_id, current_user.id, data)
    except ArticleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ArticleServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
