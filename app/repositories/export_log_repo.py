"""
Export Log Repository

Audit rows written every time a project's articles are exported.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.export_log import ExportLog


class ExportLogRepository(BaseRepository[ExportLog]):
    """Repository for ExportLog model."""

    def __init__(self, db: AsyncSession):
        super().__init__(ExportLog, db)
