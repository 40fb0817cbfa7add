from typing import Dict, FrozenSet, Tuple

from app.schemas.common import (
    AssignmentMode,
    BantCategory,
    ConversationStatus,
    MemberRole,
)

# Only members holding exactly this role may receive a qualified lead
ELIGIBLE_ASSIGNEE_ROLE: str = MemberRole.agent.value

NON_ASSIGNABLE_ROLES: FrozenSet[str] = frozenset(
    {MemberRole.admin.value, MemberRole.moderator.value, MemberRole.ai_agent.value}
)

# A conversation counts towards an agent's load only in this mode/status
LOAD_ASSIGNMENT_MODE: str = AssignmentMode.human.value
LOAD_CONVERSATION_STATUS: str = ConversationStatus.active.value

BANT_CATEGORIES: Tuple[str, ...] = tuple(c.value for c in BantCategory)

# Scoring scale shared by weights, scores and tier thresholds
MIN_SCORE: int = 0
MAX_SCORE: int = 100
REQUIRED_WEIGHT_TOTAL: int = 100

CONTACT_FIELDS: Tuple[str, ...] = ("full_name", "phone", "email")

# Values the extraction service uses when it means "nothing stated"
NULL_LIKE_VALUES: FrozenSet[str] = frozenset(
    {"", "null", "none", "n/a", "na", "unknown", "not provided", "not specified"}
)

# Key aliases accepted from the extraction service's contact object
CONTACT_KEY_ALIASES: Dict[str, str] = {
    "full_name": "full_name",
    "fullName": "full_name",
    "fullname": "full_name",
    "name": "full_name",
    "phone": "phone",
    "mobile": "phone",
    "mobileNumber": "phone",
    "mobile_number": "phone",
    "phone_number": "phone",
    "phoneNumber": "phone",
    "email": "email",
    "email_address": "email",
    "emailAddress": "email",
}
