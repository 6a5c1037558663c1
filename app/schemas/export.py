"""
Export Schemas

Export request options for a project's articles.
"""

from datetime import date
from typing import Optional, List
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from app.schemas.article import ArticleStatus, ScreeningDecision


class ExportType(str, Enum):
    CSV = "csv"
    JSON = "json"
    BIBTEX = "bibtex"
    ENDNOTE = "endnote"
    PRISMA = "prisma"


class ExportFilters(BaseModel):
    status: Optional[List[ArticleStatus]] = None
    screening_decision: Optional[List[ScreeningDecision]] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be on or before date_to")
        return self


class ExportRequest(BaseModel):
    export_type: ExportType
    include_fields: Optional[List[str]] = Field(
        None,
        description="Article fields to include (defaults to a standard citation set)"
    )
    filters: ExportFilters = Field(default_factory=ExportFilters)


class ExportResult(BaseModel):
    """Rendered export ready to be sent as a download."""
    content: str
    content_type: str
    filename: str
    record_count: int
