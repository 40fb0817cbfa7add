"""Fact repository – persistence of per-conversation BANT facts."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select

from app.models.lead_facts import LeadFacts
from app.repositories.base import BaseRepository
from app.schemas.facts import ContactInfo, FactRecord
from app.schemas.scoring import ScoreResult


class FactRepository(BaseRepository):
    """Encapsulates queries against the ``lead_facts`` table."""

    async def get_by_conversation(self, conversation_id: UUID) -> Optional[LeadFacts]:
        """Return the fact row of a conversation, or ``None``."""
        result = await self._db.execute(
            select(LeadFacts).where(LeadFacts.conversation_id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, conversation_id: UUID) -> LeadFacts:
        """Return the fact row, creating an empty one on the first user turn."""
        row = await self.get_by_conversation(conversation_id)
        if row is None:
            row = LeadFacts(conversation_id=conversation_id)
            self._db.add(row)
            await self._db.flush()
        return row

    async def lock_for_update(self, conversation_id: UUID) -> LeadFacts:
        """Re-read the fact row under a row lock, refreshing the loaded copy.

        Turns of one conversation that overlap serialise here, so the
        completion check sees any write committed in the meantime.
        """
        result = await self._db.execute(
            select(LeadFacts)
            .where(LeadFacts.conversation_id == conversation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def save_facts(self, row: LeadFacts, facts: FactRecord) -> None:
        """Copy a merged fact snapshot onto its row."""
        row.budget = facts.budget
        row.authority = facts.authority
        row.need = facts.need
        row.timeline = facts.timeline
        row.contact_full_name = facts.contact.full_name
        row.contact_phone = facts.contact.phone
        row.contact_email = facts.contact.email
        await self._db.flush()

    async def mark_completed(
        self, row: LeadFacts, completed_at: datetime, result: ScoreResult
    ) -> None:
        """Stamp completion and store the score computed from this snapshot."""
        row.completed_at = completed_at
        row.score = result.score
        row.tier = result.tier.value
        await self._db.flush()

    @staticmethod
    def to_fact_record(row: Optional[LeadFacts]) -> FactRecord:
        """Convert a row (or its absence) into an immutable snapshot."""
        if row is None:
            return FactRecord()
        return FactRecord(
            budget=row.budget,
            authority=row.authority,
            need=row.need,
            timeline=row.timeline,
            contact=ContactInfo(
                full_name=row.contact_full_name,
                phone=row.contact_phone,
                email=row.contact_email,
            ),
            completed_at=row.completed_at,
        )
