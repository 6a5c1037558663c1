"""
Article Schemas

Studies collected for a review project and their screening state.
"""

from datetime import date, datetime
from typing import Optional, List, Dict, Any
from uuid import UUID
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.models.article import ArticleSource, ArticleStatus, ScreeningDecision



class ArticleCreate(BaseModel):
    """Manual import of a single article."""
    title: str = Field(..., min_length=1, max_length=2000)
    source: ArticleSource = ArticleSource.MANUAL
    external_id: Optional[str] = Field(None, max_length=255)
    authors: List[str] = Field(default_factory=list)
    abstract: Optional[str] = None
    publication_date: Optional[date] = None
    journal: Optional[str] = Field(None, max_length=500)
    doi: Optional[str] = Field(None, max_length=255)
    pmid: Optional[str] = Field(None, max_length=50)
    url: Optional[str] = Field(None, max_length=1000)

    @field_validator("title")
    @classmethod
    def normalize_title(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("Article title cannot be empty")
        return v


class ScreeningUpdate(BaseModel):
    """Record (or clear, with null) a screening decision."""
    screening_decision: Optional[ScreeningDecision] = None
    screening_notes: Optional[str] = Field(None, max_length=5000)


class ArticleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    external_id: Optional[str] = None
    source: ArticleSource
    title: str
    authors: List[str] = Field(default_factory=list)
    abstract: Optional[str] = None
    publication_date: Optional[date] = None
    journal: Optional[str] = None
    doi: Optional[str] = None
    pmid: Optional[str] = None
    url: Optional[str] = None
    status: ArticleStatus
    screening_decision: Optional[ScreeningDecision] = None
    screening_notes: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("meta", "metadata"),
    )
    created_at: datetime
    updated_at: datetime

    @field_validator("authors", "metadata", mode="before")
    @classmethod
    def empty_when_null(cls, v, info):
        if v is None:
            return [] if info.field_name == "authors" else {}
        return v


class DuplicateGroup(BaseModel):
    """Articles that look like the same study; `primary` is the earliest import."""
    primary: ArticleResponse
    duplicates: List[ArticleResponse]
    similarity_score: float = Field(..., ge=0.0, le=1.0)
    matching_fields: List[str] = Field(default_factory=list)
