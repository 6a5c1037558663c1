"""
Profile Repository

Data access layer for Profile model.
Profiles are keyed by the auth platform's user id.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models import Profile


class ProfileRepository(BaseRepository[Profile]):
    """Repository for Profile model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Profile, db)

    # =================
    # Get or create
    # =================
    async def get_or_create(
        self,
        user_id: UUID,
        email: str,
        full_name: Optional[str] = None
    ) -> Profile:
        """
        Return the profile for a platform user, creating it on first sight.

        The auth platform owns the account; this row only mirrors it.
        """
        profile = await self.get_by_id(user_id)
        if profile:
            return profile

        return await self.create(id=user_id, email=email, full_name=full_name)
