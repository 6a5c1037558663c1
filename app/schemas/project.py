from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.project import ProjectType, ProjectStatus



def _normalize_title(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = " ".join(value.split())
    if not normalized:
        raise ValueError("Project title cannot be empty")
    return normalized


def _normalize_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


# ============================================================
# Request Schemas (What client sends)
# ============================================================

class ProjectCreate(BaseModel):
    """Schema for creating a new review project."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Project title between 1 and 200 characters",
    )
    description: Optional[str] = Field(None, max_length=5000)
    project_type: ProjectType = Field(
        default=ProjectType.SYSTEMATIC_REVIEW,
        description="Kind of literature review",
    )
    research_domain: Optional[str] = Field(None, max_length=200)

    @field_validator("title")
    @classmethod
    def normalize_title(cls, value: str) -> str:
        """Collapse whitespace and ensure title is not empty."""
        return _normalize_title(value)

    @field_validator("description", "research_domain")
    @classmethod
    def normalize_text(cls, value: Optional[str]) -> Optional[str]:
        """Trim text; treat empty strings as None."""
        return _normalize_optional_text(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Exercise interventions for chronic low back pain",
                "description": "Systematic review of RCTs published since 2010",
                "project_type": "systematic_review",
                "research_domain": "Physiotherapy",
            }
        }
    )


class ProjectUpdate(BaseModel):
    """Schema for updating an existing project."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    status: Optional[ProjectStatus] = None
    research_domain: Optional[str] = Field(None, max_length=200)
    progress_percentage: Optional[int] = Field(None, ge=0, le=100)
    current_stage: Optional[str] = Field(None, min_length=1, max_length=100)

    @field_validator("title")
    @classmethod
    def normalize_title(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_title(value)

    @field_validator("description", "research_domain")
    @classmethod
    def normalize_text(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_optional_text(value)


# ============================================================
# Response Schemas (What server sends back)
# ============================================================

class ProjectResponse(BaseModel):
    """Schema for project data returned from the API."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    title: str
    description: Optional[str] = None
    project_type: ProjectType
    status: ProjectStatus
    research_domain: Optional[str] = None
    progress_percentage: int = 0
    current_stage: str = "Planning"
    last_activity_at: datetime
    created_at: datetime
    updated_at: datetime


class ProjectStats(BaseModel):
    """Screening counts for a project's articles."""
    total_studies: int = 0
    pending_studies: int = 0
    included_studies: int = 0
    excluded_studies: int = 0
    maybe_studies: int = 0
    studies_last_updated: Optional[datetime] = None
