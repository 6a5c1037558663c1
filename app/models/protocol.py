import enum

from sqlalchemy import Column, String, ForeignKey, Text, Integer, Boolean, DateTime, Enum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import BaseModel, JSONType, TextArray


class FrameworkType(str, enum.Enum):
    PICO = "pico"
    SPIDER = "spider"
    OTHER = "other"


class ProtocolStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Protocol(BaseModel):
    """
    Review protocol of a project.

    A locked protocol is frozen: it can be read, unlocked or copied, but
    not edited or deleted.
    """

    __tablename__ = "protocols"

    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    research_question = Column(Text, nullable=False)
    framework_type = Column(
        Enum(FrameworkType, name="framework_type", values_callable=lambda x: [e.value for e in x]),
        default=FrameworkType.PICO,
        nullable=False,
        index=True
    )

    # PICO
    population = Column(Text, nullable=True)
    intervention = Column(Text, nullable=True)
    comparison = Column(Text, nullable=True)
    outcome = Column(Text, nullable=True)

    # SPIDER
    sample = Column(Text, nullable=True)
    phenomenon = Column(Text, nullable=True)
    design = Column(Text, nullable=True)
    evaluation = Column(Text, nullable=True)
    research_type = Column(Text, nullable=True)

    inclusion_criteria = Column(TextArray, nullable=False, default=list)
    exclusion_criteria = Column(TextArray, nullable=False, default=list)
    search_strategy = Column(JSONType, nullable=False, default=dict)
    databases = Column(TextArray, nullable=False, default=list)
    keywords = Column(TextArray, nullable=False, default=list)
    date_range = Column(JSONType, nullable=True)
    study_types = Column(TextArray, nullable=False, default=list)

    status = Column(
        Enum(ProtocolStatus, name="protocol_status", values_callable=lambda x: [e.value for e in x]),
        default=ProtocolStatus.DRAFT,
        nullable=False,
        index=True
    )
    is_locked = Column(Boolean, default=False, nullable=False)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, default=1, nullable=False)

    ai_generated = Column(Boolean, default=False, nullable=False)
    ai_guidance_used = Column(JSONType, nullable=False, default=dict)

    project = relationship("Project", back_populates="protocols")
    owner = relationship("Profile", back_populates="protocols")
