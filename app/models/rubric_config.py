from sqlalchemy import Column, Integer, DateTime, Text, CheckConstraint, Index, text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from app.models.base import Base
from sqlalchemy.sql import func


class RubricConfigRecord(Base):
    """Validated custom BANT rubric for an organization or one of its AI agents.

    ``agent_id`` NULL marks the organization-wide rubric.  Criterion
    tables are stored as JSONB lists exactly as validated; the derived
    ``scoring_prompt`` is regenerated on every write.
    """

    __tablename__ = "rubric_configs"
    config_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    organization_id = Column(UUID(as_uuid=True), nullable=False)
    agent_id = Column(UUID(as_uuid=True))

    budget_weight = Column(Integer, nullable=False)
    authority_weight = Column(Integer, nullable=False)
    need_weight = Column(Integer, nullable=False)
    timeline_weight = Column(Integer, nullable=False)
    contact_weight = Column(Integer, nullable=False)

    budget_criteria = Column(JSONB, nullable=False)
    authority_criteria = Column(JSONB, nullable=False)
    need_criteria = Column(JSONB, nullable=False)
    timeline_criteria = Column(JSONB, nullable=False)
    contact_criteria = Column(JSONB, nullable=False)

    priority_threshold = Column(Integer, nullable=False)
    hot_threshold = Column(Integer, nullable=False)
    warm_threshold = Column(Integer, nullable=False)

    questions = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    scoring_prompt = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "budget_weight + authority_weight + need_weight + timeline_weight"
            " + contact_weight = 100",
            name="ck_rubric_weights_total",
        ),
        CheckConstraint(
            "priority_threshold > hot_threshold AND hot_threshold > warm_threshold",
            name="ck_rubric_thresholds_desc",
        ),
        # One rubric per (organization, agent); one org-wide rubric per org
        Index(
            "uq_rubric_org_agent",
            "organization_id",
            "agent_id",
            unique=True,
            postgresql_where=text("agent_id IS NOT NULL"),
        ),
        Index(
            "uq_rubric_org_default",
            "organization_id",
            unique=True,
            postgresql_where=text("agent_id IS NULL"),
        ),
    )
