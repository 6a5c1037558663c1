from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.schemas.auth import ProfileResponse, ProfileUpdate
from app.services.auth_service import AuthService
from app.api.deps import get_current_user
from app.models import Profile

# ============================================================
# Router Setup
# ============================================================

router = APIRouter(tags=["Authentication"])


# ============================================================
# Current User Endpoint
# ============================================================

@router.get(
    "/me",
    response_model=ProfileResponse,
    responses={
        200: {"description": "Current user profile"},
        401: {"description": "Not authenticated"},
    }
)
async def get_me(
    current_user: Profile = Depends(get_current_user)
):
    """
    Get the profile of the signed-in user.

    Requires a platform access token in the Authorization header:
    `Authorization: Bearer <access_token>`
    """
    return current_user


# ============================================================
# Update Profile Endpoint
# ============================================================

@router.patch(
    "/me",
    response_model=ProfileResponse,
    responses={
        200: {"description": "Profile updated"},
        401: {"description": "Not authenticated"},
    },
)
async def update_me(
    update_data: ProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update the current user's profile fields."""
    auth_service = AuthService(db)

    try:
        return await auth_service.update_profile(current_user, update_data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
