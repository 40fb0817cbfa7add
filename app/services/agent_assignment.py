import logging
from typing import Optional, Sequence
from uuid import UUID

from app.repositories.member_repository import AgentLoad, MemberRepository

logger = logging.getLogger(__name__)


def select_least_loaded(candidates: Sequence[AgentLoad]) -> Optional[AgentLoad]:
    """Pick the candidate with the strictly lowest load.

    Ties go to the earliest ``joined_at``, then to the lowest user id,
    so the same pool always yields the same agent.
    """
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda c: (c.active_conversations, c.joined_at, str(c.user_id)),
    )


class AssignmentBalancer:
    """Hands qualified leads to the least-loaded human agent.

    Load is the number of active human-mode conversations an agent
    currently holds.  The read is point-in-time and unlocked: two
    completions racing may pick the same agent, which the next
    assignment rebalances.
    """

    async def assign(
        self, organization_id: UUID, member_repo: MemberRepository
    ) -> Optional[UUID]:
        """Return the chosen agent's user id, or ``None`` when nobody is eligible."""
        candidates = await member_repo.get_eligible_agents_with_load(organization_id)
        chosen = select_least_loaded(candidates)
        if chosen is None:
            logger.info(
                "No eligible human agent in organization %s; lead stays unassigned",
                organization_id,
            )
            return None

        logger.info(
            "Assigning lead to agent %s (%d active conversations, %d candidates)",
            chosen.user_id,
            chosen.active_conversations,
            len(candidates),
        )
        return chosen.user_id
