"""Member repository – eligible-agent pool and current load."""

from dataclasses import dataclass
from datetime import datetime
from typing import List
from uuid import UUID

from sqlalchemy import Select, and_, func, select

from app.core.constants import (
    ELIGIBLE_ASSIGNEE_ROLE,
    LOAD_ASSIGNMENT_MODE,
    LOAD_CONVERSATION_STATUS,
)
from app.models.conversation import Conversation
from app.models.organization_member import OrganizationMember
from app.repositories.base import BaseRepository


@dataclass(frozen=True)
class AgentLoad:
    """An eligible human agent with their active human-mode conversations."""

    user_id: UUID
    joined_at: datetime
    active_conversations: int


def eligible_agents_with_load_query(organization_id: UUID) -> Select:
    """Every human agent of the organization with their active human-mode load.

    The role filter is an exact match, so admins, moderators and AI
    agents never enter the pool.  Agents without conversations get a
    load of zero through the outer join.
    """
    load = func.count(Conversation.conversation_id)
    return (
        select(OrganizationMember.user_id, OrganizationMember.joined_at, load)
        .outerjoin(
            Conversation,
            and_(
                Conversation.assigned_to == OrganizationMember.user_id,
                Conversation.organization_id == OrganizationMember.organization_id,
                Conversation.assignment_mode == LOAD_ASSIGNMENT_MODE,
                Conversation.status == LOAD_CONVERSATION_STATUS,
            ),
        )
        .where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.role == ELIGIBLE_ASSIGNEE_ROLE,
        )
        .group_by(OrganizationMember.user_id, OrganizationMember.joined_at)
    )


class MemberRepository(BaseRepository):
    """Encapsulates queries against ``organization_members``."""

    async def get_eligible_agents_with_load(self, organization_id: UUID) -> List[AgentLoad]:
        """Return every human agent of the organization with their load."""
        result = await self._db.execute(eligible_agents_with_load_query(organization_id))
        return [
            AgentLoad(user_id=user_id, joined_at=joined_at, active_conversations=count)
            for user_id, joined_at, count in result.all()
        ]
