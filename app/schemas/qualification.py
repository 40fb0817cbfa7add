"""Schemas describing the outcome of a qualification turn."""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import LeadTier, QualificationStage
from app.schemas.facts import FactRecord, TokenUsage


class Question(BaseModel):
    """The single next question the assistant should ask."""

    model_config = ConfigDict(frozen=True)

    stage: QualificationStage
    field: str
    text: str


class TurnOutcome(BaseModel):
    """What the transport layer receives back after one user turn.

    Exactly one of ``question`` / ``completed`` is meaningful: when
    ``completed`` is true there is no further question.
    """

    conversation_id: UUID
    facts: FactRecord
    question: Optional[Question] = None
    completed: bool = False
    score: Optional[int] = None
    tier: Optional[LeadTier] = None
    assigned_agent_id: Optional[UUID] = None
    extraction_failed: bool = False
    usage: TokenUsage = Field(default_factory=TokenUsage)


class QualificationStatusResponse(BaseModel):
    """Read-only view for GET /conversations/{id}/qualification."""

    conversation_id: UUID
    facts: FactRecord
    stage: QualificationStage
    next_question: Optional[Question] = None
    missing_fields: List[str] = Field(default_factory=list)
    score: Optional[int] = None
    tier: Optional[LeadTier] = None


class TurnRequest(BaseModel):
    """Body of POST /conversations/{id}/turns: one inbound user message."""

    content: str = Field(..., min_length=1, max_length=4000)
