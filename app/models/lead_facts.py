from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    Text,
    ForeignKey,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.models.base import Base
from sqlalchemy.sql import func


class LeadFacts(Base):
    """Incrementally filled BANT + contact facts for one conversation.

    Created at the first user turn and updated after every extraction
    pass.  Once ``completed_at`` is set the row is frozen: the ORM
    listener in ``app.models.listeners`` rejects later changes to the
    fact columns.  ``score`` and ``tier`` hold the snapshot computed at
    completion time.
    """

    __tablename__ = "lead_facts"
    fact_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    conversation_id = Column(
        UUID(as_uuid=True),
        ForeignKey("conversations.conversation_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    budget = Column(Text)
    authority = Column(Text)
    need = Column(Text)
    timeline = Column(Text)
    contact_full_name = Column(String(200))
    contact_phone = Column(String(50))
    contact_email = Column(String(255))
    completed_at = Column(DateTime(timezone=True))
    score = Column(Integer)
    tier = Column(String(20))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    conversation = relationship("Conversation", back_populates="facts")

    __table_args__ = (
        CheckConstraint("score IS NULL OR (score >= 0 AND score <= 100)", name="ck_lead_facts_score_range"),
        CheckConstraint(
            "tier IS NULL OR tier IN ('priority', 'hot', 'warm', 'cold')",
            name="ck_lead_facts_tier",
        ),
    )
