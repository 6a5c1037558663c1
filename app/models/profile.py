from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from .base import BaseModel


class Profile(BaseModel):
    """Application-side record of a platform user; id is the auth subject."""

    __tablename__ = "profiles"

    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(200), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    organization = Column(String(200), nullable=True)

    # Relationships - a profile OWNS these
    projects = relationship("Project", back_populates="owner", cascade="all, delete-orphan")
    conversations = relationship("Conversation", back_populates="user", cascade="all, delete-orphan")
    export_logs = relationship("ExportLog", back_populates="user", cascade="all, delete-orphan")
    protocols = relationship("Protocol", back_populates="owner", cascade="all, delete-orphan")
