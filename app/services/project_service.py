"""
Project Service
Business logic for review projects.
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.project_repo import ProjectRepository
from app.repositories.article_repo import ArticleRepository
from app.models.project import Project, ProjectStatus
from app.models.article import ScreeningDecision
from app.schemas.project import ProjectCreate, ProjectUpdate, ProjectStats


class ProjectService:
    """Service class for project operations."""

    def __init__(self, db: AsyncSession):
        """Initialize with database session."""
        self.db = db
        self.project_repo = ProjectRepository(db)
        self.article_repo = ArticleRepository(db)

    # ============================================================
    # Create Project
    # ============================================================
    async def create_project(
        self,
        project_data: ProjectCreate,
        user_id: UUID
    ) -> Project:
        """
        Create a new project for a user.

        New projects start as drafts in the "Planning" stage with no progress.

        Args:
            project_data: Validated project creation data
            user_id: ID of the user creating the project

        Returns:
            Created project
        """
        return await self.project_repo.create(
            user_id=user_id,
            title=project_data.title,
            description=project_data.description,
            project_type=project_data.project_type,
            research_domain=project_data.research_domain,
            status=ProjectStatus.DRAFT,
            progress_percentage=0,
            current_stage="Planning"
        )

    # ============================================================
    # Get Single Project
    # ============================================================
    async def get_project(
        self,
        project_id: UUID,
        user_id: UUID
    ) -> Project:
        """
        Get a project by ID, verifying ownership.

        Raises:
            ValueError: If project not found or not owned by user
        """
        project = await self.project_repo.get_for_user(project_id, user_id)

        if not project:
            raise ValueError("Project not found")

        return project

    # ============================================================
    # Get User's Projects
    # ============================================================
    async def get_user_projects(
        self,
        user_id: UUID,
        status: Optional[ProjectStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Project]:
        """
        Get all projects for a user, most recent activity first.
        """
        return await self.project_repo.get_all_for_user(user_id, status, skip, limit)

    # ============================================================
    # Update Project
    # ============================================================
    async def update_project(
        self,
        project_id: UUID,
        project_data: ProjectUpdate,
        user_id: UUID
    ) -> Project:
        """
        Update a project, verifying ownership.

        Raises:
            ValueError: If project not found or not owned by user
        """
        project = await self.get_project(project_id, user_id)

        update_data = project_data.model_dump(exclude_unset=True)

        if update_data:
            return await self.project_repo.apply(project, **update_data)
        return project

    # ============================================================
    # Delete Project
    # ============================================================
    async def delete_project(
        self,
        project_id: UUID,
        user_id: UUID
    ) -> bool:
        """
        Delete a project with its conversations, articles and export logs.

        Raises:
            ValueError: If project not found or not owned by user
        """
        await self.get_project(project_id, user_id)
        return await self.project_repo.delete(project_id)

    # ============================================================
    # Project Stats
    # ============================================================
    async def get_project_stats(self, project_id: UUID, user_id: UUID) -> ProjectStats:
        """
        Screening counts for the project dashboard.

        Articles without a decision count as pending.
        """
        await self.get_project(project_id, user_id)

        counts = await self.article_repo.screening_counts(project_id)

        return ProjectStats(
            total_studies=sum(counts.values()),
            pending_studies=counts.get(None, 0),
            included_studies=counts.get(ScreeningDecision.INCLUDE, 0),
            excluded_studies=counts.get(ScreeningDecision.EXCLUDE, 0),
            maybe_studies=counts.get(ScreeningDecision.MAYBE, 0),
            studies_last_updated=await self.article_repo.last_updated(project_id),
        )
