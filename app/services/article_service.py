"""
Article Service

Studies collected for a project: listing, manual import and screening.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.article import Article, ArticleStatus, ScreeningDecision
from app.repositories.article_repo import ArticleRepository
from app.repositories.project_repo import ProjectRepository
from app.schemas.article import ArticleCreate, ArticleResponse, DuplicateGroup, ScreeningUpdate
from app.services.deduplication import find_duplicate_groups

logger = logging.getLogger(__name__)


class ArticleServiceError(Exception):
    """Base exception for article operations."""
    pass


class ArticleNotFoundError(ArticleServiceError):
    pass


class DuplicateArticleError(ArticleServiceError):
    """Same source + external id already imported into the project."""
    pass


class ArticleService:
    """Service class for article operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.article_repo = ArticleRepository(db)
        self.project_repo = ProjectRepository(db)

    async def _verify_project(self, project_id: UUID, user_id: UUID) -> None:
        project = await self.project_repo.get_for_user(project_id, user_id)
        if not project:
            raise ArticleServiceError("Project not found")

    async def list_articles(
        self,
        project_id: UUID,
        user_id: UUID,
        status: Optional[ArticleStatus] = None,
        screening_decision: Optional[ScreeningDecision] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Article]:
        await self._verify_project(project_id, user_id)
        return await self.article_repo.get_project_articles(
            project_id,
            status=[status] if status else None,
            screening_decision=[screening_decision] if screening_decision else None,
            skip=skip,
            limit=limit
        )

    async def create_article(
        self,
        project_id: UUID,
        user_id: UUID,
        data: ArticleCreate
    ) -> Article:
        """
        Import a single article into a project.

        Raises:
            DuplicateArticleError: an article with the same source and
                external id is already in the project
        """
        await self._verify_project(project_id, user_id)

        if data.external_id:
            existing = await self.article_repo.get_by_external_id(project_id, data.source, data.external_id)
            if existing:
                raise DuplicateArticleError("Article already imported")

        article = await self.article_repo.create(project_id=project_id, **data.model_dump())
        await self.project_repo.touch(project_id)

        logger.info(f"Article {article.id} added to project {project_id}")
        return article

    async def update_screening(
        self,
        project_id: UUID,
        article_id: UUID,
        user_id: UUID,
        data: ScreeningUpdate
    ) -> Article:
        """Record a screening decision; a null decision puts the article back to pending."""
        await self._verify_project(project_id, user_id)

        article = await self.article_repo.get_in_project(article_id, project_id)
        if not article:
            raise ArticleNotFoundError("Article not found")

        article = await self.article_repo.apply(
            article,
            screening_decision=data.screening_decision,
            screening_notes=data.screening_notes
        )
        await self.project_repo.touch(project_id)
        return article

    async def find_duplicates(
        self,
        project_id: UUID,
        user_id: UUID,
        threshold: Optional[float] = None
    ) -> List[DuplicateGroup]:
        """
        Group the project's articles that look like the same study.

        Articles are compared oldest first, so the earliest import of a
        study is the primary of its group.
        """
        await self._verify_project(project_id, user_id)

        articles = await self.article_repo.get_project_articles(project_id, limit=None)
        clusters = find_duplicate_groups(list(reversed(articles)), threshold)

        logger.info(f"Found {len(clusters)} duplicate groups in project {project_id}")
        return [
            DuplicateGroup(
                primary=ArticleResponse.model_validate(cluster.primary),
                duplicates=[ArticleResponse.model_validate(a) for a in cluster.duplicates],
                similarity_score=cluster.similarity_score,
                matching_fields=cluster.matching_fields,
            )
            for cluster in clusters
        ]
