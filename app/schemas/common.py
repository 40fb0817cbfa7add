from enum import Enum
from typing import Optional

from pydantic import BaseModel


class BantCategory(str, Enum):
    budget = "budget"
    authority = "authority"
    need = "need"
    timeline = "timeline"
    contact = "contact"


class LeadTier(str, Enum):
    priority = "priority"
    hot = "hot"
    warm = "warm"
    cold = "cold"


class MemberRole(str, Enum):
    admin = "admin"
    moderator = "moderator"
    agent = "agent"
    ai_agent = "ai_agent"


class AssignmentMode(str, Enum):
    ai = "ai"
    human = "human"


class ConversationStatus(str, Enum):
    active = "active"
    closed = "closed"


class MessageSender(str, Enum):
    user = "user"
    ai = "ai"
    agent = "agent"


class QualificationStage(str, Enum):
    """Linear question order; ``start`` and ``complete`` carry no question."""

    start = "start"
    budget = "budget"
    authority = "authority"
    need = "need"
    timeline = "timeline"
    contact_name = "contact_name"
    contact_phone = "contact_phone"
    contact_email = "contact_email"
    complete = "complete"


class SuccessResponse(BaseModel):
    """Generic success response base."""

    success: bool = True
    message: Optional[str] = None
