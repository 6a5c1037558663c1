from datetime import datetime, timezone, timedelta
from typing import Any, Union, Optional, Dict
import uuid

from jose import JWTError, jwt
from pydantic import ValidationError

# =====================================================
# Application Settings
# =====================================================
from app.core.config import settings
from app.schemas.auth import TokenClaims


# =====================================================
# JWT Creation
# =====================================================
def create_access_token(
    subject: Union[str, Any],
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create an access token shaped like the auth platform's.

    Production tokens are issued by the platform; this is used for local
    development and tests.
    """
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode = {
        "exp": expire,                     # Expiration time
        "sub": str(subject),               # Subject (platform user ID)
        "email": email,
        "role": "authenticated",
        "iat": now,                        # Issued at
        "jti": str(uuid.uuid4())           # Unique token ID
    }
    if settings.JWT_AUDIENCE:
        to_encode["aud"] = settings.JWT_AUDIENCE

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET,
        algorithm=settings.ALGORITHM
    )


# =====================================================
# Token Verification
# =====================================================
def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify signature, expiry and audience; return the raw payload if valid.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options={"verify_aud": bool(settings.JWT_AUDIENCE)}
        )
    except JWTError:
        return None


def verify_token(token: str) -> Optional[TokenClaims]:
    """
    Verify a platform access token and return its claims.

    Returns None for bad signatures, expired tokens, a wrong audience or a
    subject that is not a UUID.
    """
    payload = decode_token(token)
    if not payload:
        return None

    try:
        return TokenClaims.model_validate(payload)
    except ValidationError:
        return None


def verify_access_token(token: str) -> Optional[str]:
    """
    Verify access token and return the subject.
    """
    claims = verify_token(token)
    return str(claims.sub) if claims else None


def get_token_remaining_time(token: str) -> Optional[int]:
    """
    Get remaining time (in seconds) before token expiration.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.ALGORITHM],
            options={"verify_exp": False, "verify_aud": False}
        )

        exp = payload.get("exp")
        if exp:
            remaining = exp - datetime.now(timezone.utc).timestamp()
            return max(0, int(remaining))
        return None

    except JWTError:
        return None
