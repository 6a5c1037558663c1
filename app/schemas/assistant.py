"""
Assistant Schemas

One-off model calls outside of a conversation: protocol guidance and
research questions.
"""

from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator


def _required_text(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Value cannot be empty")
    return v


class ProtocolGuidanceRequest(BaseModel):
    research_question: str = Field(..., min_length=1, max_length=5000)
    current_protocol: Optional[str] = Field(None, max_length=20000)
    focus_area: Optional[str] = Field(
        None,
        description="One of: pico, spider, inclusion, exclusion, search_strategy",
    )

    @field_validator("research_question")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _required_text(v)


class ResearchAssistanceRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=10000)
    project_id: Optional[UUID] = Field(None, description="Adds the project's title and stage to the prompt")
    relevant_documents: List[str] = Field(default_factory=list)

    @field_validator("query")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _required_text(v)
