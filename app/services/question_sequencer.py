import logging
from typing import Callable, List, Mapping, Optional, Tuple

from app.schemas.common import QualificationStage
from app.schemas.facts import FactRecord
from app.schemas.qualification import Question

logger = logging.getLogger(__name__)


# Fixed question order.  Each step names the fact it fills, how to read
# that fact from a snapshot, and the question asked when it is missing.
_STEPS: Tuple[Tuple[QualificationStage, str, Callable[[FactRecord], Optional[str]], str], ...] = (
    (
        QualificationStage.budget,
        "budget",
        lambda f: f.budget,
        "To help find the perfect property for you, what's your budget range?",
    ),
    (
        QualificationStage.authority,
        "authority",
        lambda f: f.authority,
        "Will you be the sole decision maker for this purchase?",
    ),
    (
        QualificationStage.need,
        "need",
        lambda f: f.need,
        "Are you looking for a property for personal use, investment, or resale?",
    ),
    (
        QualificationStage.timeline,
        "timeline",
        lambda f: f.timeline,
        "When are you planning to make this purchase?",
    ),
    (
        QualificationStage.contact_name,
        "contact.full_name",
        lambda f: f.contact.full_name,
        "May I have your full name for our records?",
    ),
    (
        QualificationStage.contact_phone,
        "contact.phone",
        lambda f: f.contact.phone,
        "What's the best mobile number to reach you?",
    ),
    (
        QualificationStage.contact_email,
        "contact.email",
        lambda f: f.contact.email,
        "And finally, what's your email address?",
    ),
)

QUESTION_ORDER: Tuple[QualificationStage, ...] = tuple(step[0] for step in _STEPS)


def missing_fields(facts: FactRecord) -> List[str]:
    """Return the still-empty required fields, in question order."""
    return [field for _, field, read, _ in _STEPS if not read(facts)]


def is_complete(facts: FactRecord) -> bool:
    """A record is complete once stamped, or once every field is filled."""
    return facts.is_completed or not missing_fields(facts)


def current_stage(facts: FactRecord) -> QualificationStage:
    """Return the first unmet stage, or ``complete``.

    Recomputed from the snapshot every time; there is no stored cursor,
    so fields filled out of order are simply skipped.
    """
    if facts.is_completed:
        return QualificationStage.complete
    for stage, _, read, _ in _STEPS:
        if not read(facts):
            return stage
    return QualificationStage.complete


def next_question(
    facts: FactRecord, overrides: Optional[Mapping[QualificationStage, str]] = None
) -> Optional[Question]:
    """Return the next question to ask, or ``None`` when qualification is complete.

    *overrides* replaces the wording of individual stages (an agent's own
    questions); the stage order is fixed regardless.
    """
    stage = current_stage(facts)
    if stage == QualificationStage.complete:
        return None

    for step_stage, field, _, text in _STEPS:
        if step_stage == stage:
            custom = (overrides or {}).get(stage)
            return Question(stage=stage, field=field, text=custom or text)

    # Unreachable while _STEPS covers every non-terminal stage
    raise ValueError(f"No question defined for stage {stage.value}")
