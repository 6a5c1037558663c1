from fastapi import HTTPException, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import logging

from app.db.database import get_db, AsyncSessionLocal
from app.models import Profile
from app.services.auth_service import AuthService
from app.services.chat_store import open_chat_store

logger = logging.getLogger(__name__)

# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


# =====================================================
# Get Current user
# =====================================================
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Profile:
    """
    Dependency that validates the platform JWT and returns the user's profile.

    Raises:
        HTTPException 401: If token is invalid or missing
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )

    auth_service = AuthService(db)

    try:
        return await auth_service.get_current_user(credentials.credentials)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"}
        )


# =====================================================
# Chat store opener
# =====================================================
def get_chat_store_opener():
    """
    Dependency returning the factory used to open a session-bound ChatStore.

    Overridden in tests to hand out stores backed by fakes.
    """
    return open_chat_store


# =====================================================
# WebSocket Authentication
# =====================================================
async def get_current_user_ws(token: str) -> Optional[Profile]:
    """
    Authenticate user from a JWT token for WebSocket connections.

    Unlike HTTP dependencies, WebSocket auth must be done manually
    since we can't use the standard Depends() pattern.

    Returns:
        Profile if valid, None if invalid
    """
    try:
        async with AsyncSessionLocal() as db:
            auth_service = AuthService(db)
            return await auth_service.get_current_user(token)
    except ValueError as e:
        logger.warning(f"WebSocket auth failed: {e}")
        return None
    except Exception as e:
        logger.error(f"WebSocket auth error: {e}")
        return None


async def get_websocket_user(token: Optional[str] = Query(None)) -> Optional[Profile]:
    """Dependency form of get_current_user_ws; the token comes from `?token=`."""
    if not token:
        return None
    return await get_current_user_ws(token)
