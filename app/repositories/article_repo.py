"""
Article Repository

Data access layer for Article model: listing with screening filters and
the per-project counts shown on the dashboard.
"""

from datetime import date
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.article import Article, ArticleStatus, ScreeningDecision


class ArticleRepository(BaseRepository[Article]):
    """Repository for Article model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Article, db)

    def _filtered(
        self,
        stmt,
        status: Optional[Sequence[ArticleStatus]] = None,
        screening_decision: Optional[Sequence[ScreeningDecision]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ):
        if status:
            stmt = stmt.where(self.model.status.in_(status))
        if screening_decision:
            stmt = stmt.where(self.model.screening_decision.in_(screening_decision))
        if date_from is not None:
            stmt = stmt.where(self.model.publication_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(self.model.publication_date <= date_to)
        return stmt

    async def get_project_articles(
        self,
        project_id: UUID,
        status: Optional[Sequence[ArticleStatus]] = None,
        screening_decision: Optional[Sequence[ScreeningDecision]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        skip: int = 0,
        limit: Optional[int] = 100
    ) -> List[Article]:
        """
        Get a project's articles, newest first.

        A limit of None returns every match (used by exports).
        """
        stmt = select(self.model).where(self.model.project_id == project_id)
        stmt = self._filtered(stmt, status, screening_decision, date_from, date_to)
        stmt = stmt.order_by(self.model.created_at.desc()).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_in_project(self, article_id: UUID, project_id: UUID) -> Optional[Article]:
        stmt = (
            select(self.model)
            .where(self.model.id == article_id)
            .where(self.model.project_id == project_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_external_id(
        self,
        project_id: UUID,
        source,
        external_id: str
    ) -> Optional[Article]:
        stmt = (
            select(self.model)
            .where(self.model.project_id == project_id)
            .where(self.model.source == source)
            .where(self.model.external_id == external_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def screening_counts(self, project_id: UUID) -> Dict[Optional[ScreeningDecision], int]:
        """Number of articles per screening decision (None = not yet screened)."""
        stmt = (
            select(self.model.screening_decision, func.count(self.model.id))
            .where(self.model.project_id == project_id)
            .group_by(self.model.screening_decision)
        )
        result = await self.db.execute(stmt)
        return {decision: count for decision, count in result.all()}

    async def last_updated(self, project_id: UUID):
        stmt = select(func.max(self.model.updated_at)).where(self.model.project_id == project_id)
        result = await self.db.execute(stmt)
        return result.scalar()
