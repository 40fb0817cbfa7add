"""Repository layer: all database access goes through here.

Repositories wrap SQLAlchemy queries so that the service layer only
contains qualification logic.
"""

from app.repositories.base import BaseRepository
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.fact_repository import FactRepository
from app.repositories.member_repository import AgentLoad, MemberRepository
from app.repositories.rubric_config_repository import RubricConfigRepository

__all__ = [
    "BaseRepository",
    "ConversationRepository",
    "FactRepository",
    "AgentLoad",
    "MemberRepository",
    "RubricConfigRepository",
]
