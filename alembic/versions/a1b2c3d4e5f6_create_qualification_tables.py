"""create qualification tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamps():
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")
        ),
    ]


def upgrade() -> None:
    # ---------------------------------------------------------------
    # Organization members
    # ---------------------------------------------------------------
    op.create_table(
        "organization_members",
        _uuid_pk("member_id"),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "role IN ('admin', 'moderator', 'agent', 'ai_agent')", name="ck_member_role"
        ),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_member_org_user"),
    )
    op.create_index(
        "idx_members_org_role", "organization_members", ["organization_id", "role"]
    )

    # ---------------------------------------------------------------
    # Conversations and messages
    # ---------------------------------------------------------------
    op.create_table(
        "conversations",
        _uuid_pk("conversation_id"),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True)),
        sa.Column("assigned_to", postgresql.UUID(as_uuid=True)),
        sa.Column("assignment_mode", sa.String(10), nullable=False, server_default="ai"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("assigned_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.CheckConstraint("assignment_mode IN ('ai', 'human')", name="ck_conv_mode"),
        sa.CheckConstraint("status IN ('active', 'closed')", name="ck_conv_status"),
    )
    op.create_index(
        "idx_conv_load", "conversations", ["assigned_to", "assignment_mode", "status"]
    )

    op.create_table(
        "messages",
        _uuid_pk("message_id"),
        sa.Column(
            "conversation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("conversations.conversation_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender", sa.String(10), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("clock_timestamp()"),
        ),
        sa.CheckConstraint(
            "sender IN ('user', 'ai', 'agent')", name="ck_message_sender"
        ),
    )
    op.create_index(
        "idx_messages_conv_created", "messages", ["conversation_id", "created_at"]
    )

    # ---------------------------------------------------------------
    # Lead facts
    # ---------------------------------------------------------------
    op.create_table(
        "lead_facts",
        _uuid_pk("fact_id"),
        sa.Column(
            "conversation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("conversations.conversation_id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("budget", sa.Text),
        sa.Column("authority", sa.Text),
        sa.Column("need", sa.Text),
        sa.Column("timeline", sa.Text),
        sa.Column("contact_full_name", sa.String(200)),
        sa.Column("contact_phone", sa.String(50)),
        sa.Column("contact_email", sa.String(255)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("score", sa.Integer),
        sa.Column("tier", sa.String(20)),
        *_timestamps(),
        sa.CheckConstraint(
            "score IS NULL OR (score >= 0 AND score <= 100)",
            name="ck_lead_facts_score_range",
        ),
        sa.CheckConstraint(
            "tier IS NULL OR tier IN ('priority', 'hot', 'warm', 'cold')",
            name="ck_lead_facts_tier",
        ),
    )

    # ---------------------------------------------------------------
    # Rubric configurations
    # ---------------------------------------------------------------
    op.create_table(
        "rubric_configs",
        _uuid_pk("config_id"),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True)),
        sa.Column("budget_weight", sa.Integer, nullable=False),
        sa.Column("authority_weight", sa.Integer, nullable=False),
        sa.Column("need_weight", sa.Integer, nullable=False),
        sa.Column("timeline_weight", sa.Integer, nullable=False),
        sa.Column("contact_weight", sa.Integer, nullable=False),
        sa.Column("budget_criteria", postgresql.JSONB, nullable=False),
        sa.Column("authority_criteria", postgresql.JSONB, nullable=False),
        sa.Column("need_criteria", postgresql.JSONB, nullable=False),
        sa.Column("timeline_criteria", postgresql.JSONB, nullable=False),
        sa.Column("contact_criteria", postgresql.JSONB, nullable=False),
        sa.Column("priority_threshold", sa.Integer, nullable=False),
        sa.Column("hot_threshold", sa.Integer, nullable=False),
        sa.Column("warm_threshold", sa.Integer, nullable=False),
        sa.Column(
            "questions",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("scoring_prompt", sa.Text, nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "budget_weight + authority_weight + need_weight + timeline_weight"
            " + contact_weight = 100",
            name="ck_rubric_weights_total",
        ),
        sa.CheckConstraint(
            "priority_threshold > hot_threshold AND hot_threshold > warm_threshold",
            name="ck_rubric_thresholds_desc",
        ),
    )
    op.create_index(
        "uq_rubric_org_agent",
        "rubric_configs",
        ["organization_id", "agent_id"],
        unique=True,
        postgresql_where=sa.text("agent_id IS NOT NULL"),
    )
    op.create_index(
        "uq_rubric_org_default",
        "rubric_configs",
        ["organization_id"],
        unique=True,
        postgresql_where=sa.text("agent_id IS NULL"),
    )

    # ---------------------------------------------------------------
    # Trigger: completed fact records are frozen
    # ---------------------------------------------------------------
    op.execute("""
        CREATE OR REPLACE FUNCTION freeze_completed_lead_facts()
        RETURNS TRIGGER AS $$
        BEGIN
            IF OLD.completed_at IS NULL THEN
                RETURN NEW;
            END IF;

            IF (NEW.budget, NEW.authority, NEW.need, NEW.timeline,
                NEW.contact_full_name, NEW.contact_phone, NEW.contact_email,
                NEW.completed_at, NEW.score, NEW.tier)
               IS DISTINCT FROM
               (OLD.budget, OLD.authority, OLD.need, OLD.timeline,
                OLD.contact_full_name, OLD.contact_phone, OLD.contact_email,
                OLD.completed_at, OLD.score, OLD.tier)
            THEN
                RAISE EXCEPTION 'lead_facts % is completed and can no longer change',
                    OLD.fact_id;
            END IF;

            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE TRIGGER trg_freeze_completed_lead_facts
        BEFORE UPDATE ON lead_facts
        FOR EACH ROW
        EXECUTE FUNCTION freeze_completed_lead_facts();
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_freeze_completed_lead_facts ON lead_facts")
    op.execute("DROP FUNCTION IF EXISTS freeze_completed_lead_facts()")
    op.drop_index("uq_rubric_org_default", table_name="rubric_configs")
    op.drop_index("uq_rubric_org_agent", table_name="rubric_configs")
    op.drop_table("rubric_configs")
    op.drop_table("lead_facts")
    op.drop_index("idx_messages_conv_created", table_name="messages")
    op.drop_table("messages")
    op.drop_index("idx_conv_load", table_name="conversations")
    op.drop_table("conversations")
    op.drop_index("idx_members_org_role", table_name="organization_members")
    op.drop_table("organization_members")
