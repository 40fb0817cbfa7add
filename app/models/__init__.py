from app.models.base import Base
from app.models.conversation import Conversation, Message
from app.models.lead_facts import LeadFacts
from app.models.rubric_config import RubricConfigRecord
from app.models.organization_member import OrganizationMember

# Import event listeners to register them
from app.models import listeners  # noqa: F401

__all__ = [
    "Base",
    "Conversation",
    "Message",
    "LeadFacts",
    "RubricConfigRecord",
    "OrganizationMember",
]
