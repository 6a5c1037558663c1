from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ProfileResponse(BaseModel):
    """The authenticated user's profile."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    organization: Optional[str] = None
    created_at: datetime


class TokenClaims(BaseModel):
    """Claims read from a platform-issued access token."""
    sub: UUID
    email: Optional[str] = None
    role: Optional[str] = None
    exp: Optional[int] = None


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=200)
    avatar_url: Optional[str] = Field(None, max_length=500)
    organization: Optional[str] = Field(None, max_length=200)
