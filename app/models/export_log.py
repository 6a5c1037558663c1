from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import CreatedModel, JSONType


class ExportLog(CreatedModel):
    __tablename__ = "export_logs"

    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    export_type = Column(String(20), nullable=False)
    record_count = Column(Integer, default=0, nullable=False)
    filters = Column(JSONType, nullable=True)

    project = relationship("Project", back_populates="export_logs")
    user = relationship("Profile", back_populates="export_logs")
