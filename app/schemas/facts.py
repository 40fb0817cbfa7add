"""Fact-record schemas shared by the extractor, sequencer and scorer."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import MessageSender


class ContactInfo(BaseModel):
    """Composite contact fact; every sub-field fills in independently."""

    model_config = ConfigDict(frozen=True)

    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.full_name and self.phone and self.email)

    @property
    def is_empty(self) -> bool:
        return not (self.full_name or self.phone or self.email)


class FactRecord(BaseModel):
    """Immutable snapshot of the BANT + contact facts of one conversation.

    Values are the user's own phrases (e.g. ``"$20-25M"``); normalisation
    into numbers and rubric tags happens at scoring time.
    """

    model_config = ConfigDict(frozen=True)

    budget: Optional[str] = None
    authority: Optional[str] = None
    need: Optional[str] = None
    timeline: Optional[str] = None
    contact: ContactInfo = Field(default_factory=ContactInfo)
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_empty(self) -> bool:
        """True until the first fact has been captured."""
        return not (self.budget or self.authority or self.need or self.timeline) and (
            self.contact.is_empty
        )


class Turn(BaseModel):
    """A single conversation turn as seen by the extractor."""

    model_config = ConfigDict(frozen=True)

    sender: MessageSender
    content: str

    @property
    def is_user(self) -> bool:
        return self.sender == MessageSender.user


class TokenUsage(BaseModel):
    """Usage reported by the text-understanding service, for metering."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ExtractionOutcome(BaseModel):
    """Result of one extraction pass.

    ``facts`` is always a usable record: on failure it is the prior
    record, untouched.
    """

    facts: FactRecord
    failed: bool = False
    error: Optional[str] = None
    usage: TokenUsage = Field(default_factory=TokenUsage)
