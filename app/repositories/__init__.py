from app.repositories.base import BaseRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.project_repo import ProjectRepository
from app.repositories.conversation_repo import ConversationRepository
from app.repositories.message_repo import MessageRepository
from app.repositories.article_repo import ArticleRepository
from app.repositories.export_log_repo import ExportLogRepository
from app.repositories.protocol_repo import ProtocolRepository

__all__ = [
    "BaseRepository",
    "ProfileRepository",
    "ProjectRepository",
    "ConversationRepository",
    "MessageRepository",
    "ArticleRepository",
    "ExportLogRepository",
    "ProtocolRepository",
]
