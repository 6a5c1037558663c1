
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import bind_session_user
from app.models import Profile
from app.repositories.profile_repo import ProfileRepository
from app.schemas.auth import ProfileUpdate
from app.core.security import verify_token


class AuthService:
    """
    Service class for authentication operations.

    Sign-up, sign-in and token refresh happen on the auth platform; this
    service only turns a bearer token into a local profile.
    """
    def __init__(self, db: AsyncSession):
        """
        Initialize with database session.

        Args:
            db: AsyncSession instance
        """
        self.db = db
        self.profile_repo = ProfileRepository(db)

    # ============================================================
    # Get Current User
    # ============================================================

    async def get_current_user(self, token: str) -> Profile:
        """
        Get the profile behind an access token.

        The first request of a new platform user creates their profile.

        Raises:
            ValueError: If token is invalid or carries no email for a new profile
        """
        claims = verify_token(token)

        if not claims:
            raise ValueError("Invalid or expired token")

        # Everything this session does from here on is row-scoped to the caller
        await bind_session_user(self.db, claims.sub)

        profile = await self.profile_repo.get_by_id(claims.sub)
        if profile:
            return profile

        if not claims.email:
            raise ValueError("User not found")

        return await self.profile_repo.get_or_create(claims.sub, claims.email)

    # ============================================================
    # Update Profile
    # ============================================================

    async def update_profile(self, profile: Profile, data: ProfileUpdate) -> Profile:
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            return profile
        return await self.profile_repo.apply(profile, **update_data)
