"""
Protocol Schemas

Review protocols: research question, PICO / SPIDER framework fields,
eligibility criteria and search strategy.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.protocol import FrameworkType, ProtocolStatus


# Changing any of these starts a new protocol version
SIGNIFICANT_FIELDS = (
    "research_question",
    "framework_type",
    "inclusion_criteria",
    "exclusion_criteria",
    "search_strategy",
)


def _clean_list(values: Optional[List[str]]) -> Optional[List[str]]:
    """Trim entries and drop blank ones."""
    if values is None:
        return None
    return [v.strip() for v in values if v and v.strip()]


class _ProtocolFields(BaseModel):
    description: Optional[str] = Field(None, max_length=5000)

    population: Optional[str] = None
    intervention: Optional[str] = None
    comparison: Optional[str] = None
    outcome: Optional[str] = None

    sample: Optional[str] = None
    phenomenon: Optional[str] = None
    design: Optional[str] = None
    evaluation: Optional[str] = None
    research_type: Optional[str] = None

    date_range: Optional[Dict[str, Any]] = None


class ProtocolCreate(_ProtocolFields):
    """New protocol; lists default to empty."""
    title: str = Field(..., min_length=1, max_length=200)
    research_question: str = Field(..., min_length=1, max_length=5000)
    framework_type: FrameworkType = FrameworkType.PICO

    inclusion_criteria: List[str] = Field(default_factory=list)
    exclusion_criteria: List[str] = Field(default_factory=list)
    search_strategy: Dict[str, Any] = Field(default_factory=dict)
    databases: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    study_types: List[str] = Field(default_factory=list)

    ai_generated: bool = False
    ai_guidance_used: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("title", "research_question")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Value cannot be empty")
        return v

    @field_validator("inclusion_criteria", "exclusion_criteria", "databases", "keywords", "study_types")
    @classmethod
    def clean_lists(cls, v: List[str]) -> List[str]:
        return _clean_list(v)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Exercise therapy protocol",
                "research_question": "Does exercise therapy reduce chronic low back pain in adults?",
                "framework_type": "pico",
                "population": "Adults with chronic low back pain",
                "intervention": "Supervised exercise therapy",
                "comparison": "Usual care",
                "outcome": "Pain intensity at 12 weeks",
                "inclusion_criteria": ["Randomised controlled trials"],
                "databases": ["PubMed", "Scopus"],
            }
        }
    )


class ProtocolUpdate(_ProtocolFields):
    """Partial update; only fields that are sent change."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    research_question: Optional[str] = Field(None, min_length=1, max_length=5000)
    framework_type: Optional[FrameworkType] = None
    status: Optional[ProtocolStatus] = None

    inclusion_criteria: Optional[List[str]] = None
    exclusion_criteria: Optional[List[str]] = None
    search_strategy: Optional[Dict[str, Any]] = None
    databases: Optional[List[str]] = None
    keywords: Optional[List[str]] = None
    study_types: Optional[List[str]] = None

    @field_validator("title", "research_question")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Value cannot be empty")
        return v

    @field_validator("inclusion_criteria", "exclusion_criteria", "databases", "keywords", "study_types")
    @classmethod
    def clean_lists(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_list(v)


class ProtocolDuplicate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)


class ProtocolResponse(_ProtocolFields):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    user_id: UUID
    title: str
    research_question: str
    framework_type: FrameworkType

    inclusion_criteria: List[str] = Field(default_factory=list)
    exclusion_criteria: List[str] = Field(default_factory=list)
    search_strategy: Dict[str, Any] = Field(default_factory=dict)
    databases: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    study_types: List[str] = Field(default_factory=list)

    status: ProtocolStatus
    is_locked: bool
    locked_at: Optional[datetime] = None
    version: int
    ai_generated: bool = False
    ai_guidance_used: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @field_validator(
        "inclusion_criteria", "exclusion_criteria", "databases", "keywords", "study_types",
        "search_strategy", "ai_guidance_used",
        mode="before"
    )
    @classmethod
    def empty_when_null(cls, v, info):
        if v is None:
            return {} if info.field_name in ("search_strategy", "ai_guidance_used") else []
        return v
