import enum

from sqlalchemy import Column, String, ForeignKey, Text, Integer, DateTime, Enum, CheckConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import BaseModel


class ProjectType(str, enum.Enum):
    SYSTEMATIC_REVIEW = "systematic_review"
    META_ANALYSIS = "meta_analysis"
    SCOPING_REVIEW = "scoping_review"
    NARRATIVE_REVIEW = "narrative_review"
    UMBRELLA_REVIEW = "umbrella_review"
    CUSTOM = "custom"


class ProjectStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    REVIEW = "review"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Project(BaseModel):
    __tablename__ = "projects"
    __table_args__ = (
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name="ck_projects_progress_range"
        ),
    )

    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    project_type = Column(
        Enum(ProjectType, name="project_type", values_callable=lambda x: [e.value for e in x]),
        default=ProjectType.SYSTEMATIC_REVIEW,
        nullable=False
    )
    status = Column(
        Enum(ProjectStatus, name="project_status", values_callable=lambda x: [e.value for e in x]),
        default=ProjectStatus.DRAFT,
        nullable=False,
        index=True
    )
    research_domain = Column(String(200), nullable=True)
    progress_percentage = Column(Integer, default=0, nullable=False)
    current_stage = Column(String(100), default="Planning", nullable=False)
    last_activity_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    owner = relationship("Profile", back_populates="projects")
    conversations = relationship("Conversation", back_populates="project", cascade="all, delete-orphan")
    articles = relationship("Article", back_populates="project", cascade="all, delete-orphan")
    export_logs = relationship("ExportLog", back_populates="project", cascade="all, delete-orphan")
    protocols = relationship("Protocol", back_populates="project", cascade="all, delete-orphan")
