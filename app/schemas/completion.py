"""
Completion Schemas

Request options and results exchanged with the language-model client.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """A role-tagged entry of the history sent to the model."""
    role: str
    content: str


class CompletionOptions(BaseModel):
    """Per-call overrides; unset values fall back to settings."""
    model: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, ge=1)


class CompletionUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class CompletionResult(BaseModel):
    """Result of a non-streaming completion."""
    content: str
    usage: CompletionUsage = Field(default_factory=CompletionUsage)
    model: Optional[str] = None
