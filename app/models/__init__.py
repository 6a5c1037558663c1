from app.models.base import Base
from app.models.profile import Profile
from app.models.project import Project, ProjectType, ProjectStatus
from app.models.conversation import Conversation, DEFAULT_CONVERSATION_TITLE
from app.models.message import Message, MessageRole
from app.models.article import Article, ArticleSource, ArticleStatus, ScreeningDecision
from app.models.export_log import ExportLog
from app.models.protocol import Protocol, FrameworkType, ProtocolStatus

__all__ = [
    "Base",
    "Profile",
    "Project",
    "ProjectType",
    "ProjectStatus",
    "Conversation",
    "DEFAULT_CONVERSATION_TITLE",
    "Message",
    "MessageRole",
    "Article",
    "ArticleSource",
    "ArticleStatus",
    "ScreeningDecision",
    "ExportLog",
    "Protocol",
    "FrameworkType",
    "ProtocolStatus",
]
