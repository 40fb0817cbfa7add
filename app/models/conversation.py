from sqlalchemy import Column, String, DateTime, Text, CheckConstraint, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.models.base import Base
from sqlalchemy.sql import func


class Conversation(Base):
    """Chat between a prospect and an organization's AI agent.

    ``assigned_to`` / ``assignment_mode`` record the human handoff;
    active human-mode conversations make up an agent's current load.
    """

    __tablename__ = "conversations"
    conversation_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    organization_id = Column(UUID(as_uuid=True), nullable=False)
    agent_id = Column(UUID(as_uuid=True))
    assigned_to = Column(UUID(as_uuid=True))
    assignment_mode = Column(String(10), nullable=False, server_default="ai")
    status = Column(String(20), nullable=False, server_default="active")
    assigned_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    messages = relationship(
        "Message", back_populates="conversation", cascade="all, delete-orphan"
    )
    facts = relationship(
        "LeadFacts",
        back_populates="conversation",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("assignment_mode IN ('ai', 'human')", name="ck_conv_mode"),
        CheckConstraint("status IN ('active', 'closed')", name="ck_conv_status"),
        Index("idx_conv_load", "assigned_to", "assignment_mode", "status"),
    )


class Message(Base):
    """One turn of a conversation, authored by the user, the AI or an agent."""

    __tablename__ = "messages"
    message_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    conversation_id = Column(
        UUID(as_uuid=True),
        ForeignKey("conversations.conversation_id", ondelete="CASCADE"),
        nullable=False,
    )
    sender = Column(String(10), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.clock_timestamp())

    conversation = relationship("Conversation", back_populates="messages")

    __table_args__ = (
        CheckConstraint("sender IN ('user', 'ai', 'agent')", name="ck_message_sender"),
        Index("idx_messages_conv_created", "conversation_id", "created_at"),
    )
