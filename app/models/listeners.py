from datetime import datetime, timezone
from sqlalchemy import event, inspect

from app.core.exceptions import FactRecordLockedError
from app.models.lead_facts import LeadFacts
from app.models.rubric_config import RubricConfigRecord
from app.models.conversation import Conversation

# Columns that freeze once a fact record is completed
_FROZEN_FACT_COLUMNS = (
    "budget",
    "authority",
    "need",
    "timeline",
    "contact_full_name",
    "contact_phone",
    "contact_email",
    "completed_at",
    "score",
    "tier",
)


# Auto updated_at
@event.listens_for(LeadFacts, "before_update")
@event.listens_for(RubricConfigRecord, "before_update")
@event.listens_for(Conversation, "before_update")
def update_timestamp(mapper, connection, target):
    target.updated_at = datetime.now(timezone.utc)


@event.listens_for(LeadFacts, "before_update")
def block_completed_fact_changes(mapper, connection, target):
    """Reject writes to a fact record whose completion was already stored."""
    state = inspect(target)
    completed_history = state.attrs.completed_at.history
    previously_completed = (
        completed_history.unchanged or completed_history.deleted
    )
    if not previously_completed or previously_completed[0] is None:
        return

    for column in _FROZEN_FACT_COLUMNS:
        if state.attrs[column].history.has_changes():
            raise FactRecordLockedError(
                f"Fact record for conversation {target.conversation_id} "
                f"is completed; refusing to change '{column}'"
            )
