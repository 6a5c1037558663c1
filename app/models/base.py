"""
Base Model Module

Abstract base classes for all SQLAlchemy models:
- CreatedModel: UUID primary key + created_at (append-only rows such as
  messages and export logs)
- BaseModel: CreatedModel + updated_at (mutable rows)

JSONType and TextArray are JSONB / TEXT[] on PostgreSQL and plain JSON on
other engines, so the schema can also be created on SQLite for tests.
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, Text, func
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID

from app.db.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")
TextArray = JSON().with_variant(ARRAY(Text), "postgresql")


class CreatedModel(Base):
    """
    Abstract model with an id and a creation timestamp.

    Attributes:
        id (UUID): Primary key, generated client side
        created_at (DateTime): Set by the database when the row is inserted
    """

    __abstract__ = True

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
        index=True
    )

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id})>"


class BaseModel(CreatedModel):
    """
    Abstract model for rows that are edited after creation.

    Attributes:
        updated_at (DateTime): Refreshed on every ORM update
    """

    __abstract__ = True

    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
