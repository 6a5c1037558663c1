from sqlalchemy import Column, ForeignKey, Text, Enum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum
from .base import CreatedModel, JSONType


# Message Roles
class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(CreatedModel):
    __tablename__ = "messages"

    conversation_id = Column(UUID(as_uuid=True), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        Enum(MessageRole, name="message_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True
    )
    content = Column(Text, nullable=False, default="")
    # "metadata" is reserved on declarative classes, so the attribute is `meta`
    meta = Column("metadata", JSONType, nullable=False, default=dict, server_default="{}")

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
