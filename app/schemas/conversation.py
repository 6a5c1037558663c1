"""
Conversation and Message Schemas

Pydantic models shared by the chat endpoints, the service layer and the
conversation store.

Message metadata:
----------------
Free-form JSON attached to every message. The store writes:
- timestamp: ISO time the message was produced
- streaming: True while an assistant placeholder is being filled
- final: True once a streamed reply has been persisted
- failed / error: set when a stream breaks off part way
- usage: token usage of a non-streamed reply
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import UUID
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.models.message import MessageRole


# ============================================================
# MESSAGE SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    """
    A persisted message.

    ORM rows expose their metadata column as `meta`; both names are accepted.
    """
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    role: MessageRole
    content: str = ""
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("meta", "metadata"),
        description="Timestamps, streaming flags and token usage"
    )
    created_at: datetime

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, v):
        return v or {}


# ============================================================
# CONVERSATION SCHEMAS
# ============================================================

class ConversationCreate(BaseModel):
    """
    Schema for creating a new conversation.

    The title falls back to "New Conversation" and is replaced by the first
    user message once one is sent.
    """
    project_id: UUID = Field(..., description="Project the conversation belongs to")
    title: Optional[str] = Field(
        None,
        max_length=200,
        description="Conversation title (defaults to 'New Conversation')"
    )
    context: Optional[str] = Field(
        None,
        max_length=10000,
        description="Extra context stored with the conversation"
    )


class ConversationUpdate(BaseModel):
    """Schema for renaming a conversation."""
    title: str = Field(..., min_length=1, max_length=200, description="New conversation title")

    @field_validator("title")
    @classmethod
    def normalize_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v


class ConversationResponse(BaseModel):
    """A conversation without its messages."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    user_id: UUID
    title: str
    context: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ConversationWithMessages(ConversationResponse):
    """
    Conversation with its messages included, oldest first.

    Used as the store's current conversation and by the chat view.
    """
    messages: List[MessageResponse] = Field(
        default_factory=list,
        description="Messages in this conversation"
    )


class ConversationListResponse(BaseModel):
    """Response for listing conversations."""
    conversations: List[ConversationResponse]
    total: int


# ============================================================
# CHAT SCHEMAS (for the actual chat interaction)
# ============================================================

class ChatRequest(BaseModel):
    """Request to send a chat message."""
    message: str = Field(
        ...,
        min_length=1,
        max_length=10000,
        description="User's message"
    )

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty")
        return v


class ChatResponse(BaseModel):
    """
    Response from chat (non-streaming).

    For streaming, see the SSE endpoint.
    """
    user_message: MessageResponse
    message: MessageResponse = Field(..., description="The assistant's reply")
    conversation: ConversationResponse = Field(
        ...,
        description="Conversation after the exchange (title may have changed)"
    )
