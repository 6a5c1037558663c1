import enum

from sqlalchemy import Column, String, ForeignKey, Text, Date, Enum, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import BaseModel, JSONType, TextArray


class ArticleSource(str, enum.Enum):
    PUBMED = "pubmed"
    SCOPUS = "scopus"
    WOS = "wos"
    MANUAL = "manual"
    OTHER = "other"


class ArticleStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ScreeningDecision(str, enum.Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"
    MAYBE = "maybe"


class Article(BaseModel):
    """A study collected for a project's review."""

    __tablename__ = "articles"
    __table_args__ = (
        UniqueConstraint("project_id", "source", "external_id", name="uq_articles_project_source_external"),
    )

    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String(255), nullable=True)
    source = Column(
        Enum(ArticleSource, name="article_source", values_callable=lambda x: [e.value for e in x]),
        default=ArticleSource.MANUAL,
        nullable=False
    )
    title = Column(Text, nullable=False)
    authors = Column(TextArray, nullable=True)
    abstract = Column(Text, nullable=True)
    publication_date = Column(Date, nullable=True)
    journal = Column(String(500), nullable=True)
    doi = Column(String(255), nullable=True)
    pmid = Column(String(50), nullable=True)
    url = Column(String(1000), nullable=True)
    status = Column(
        Enum(ArticleStatus, name="article_status", values_callable=lambda x: [e.value for e in x]),
        default=ArticleStatus.PENDING,
        nullable=False,
        index=True
    )
    screening_decision = Column(
        Enum(ScreeningDecision, name="screening_decision", values_callable=lambda x: [e.value for e in x]),
        nullable=True,
        index=True
    )
    screening_notes = Column(Text, nullable=True)
    meta = Column("metadata", JSONType, nullable=False, default=dict, server_default="{}")

    project = relationship("Project", back_populates="articles")
