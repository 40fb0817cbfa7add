from sqlalchemy import Column, String, DateTime, CheckConstraint, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from app.models.base import Base
from sqlalchemy.sql import func


class OrganizationMember(Base):
    """Membership of a user in an organization, with their role.

    Only members with role ``agent`` are eligible to receive qualified
    leads; ``joined_at`` is the stable tie-breaker for load balancing.
    """

    __tablename__ = "organization_members"
    member_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    organization_id = Column(UUID(as_uuid=True), nullable=False)
    user_id = Column(UUID(as_uuid=True), nullable=False)
    role = Column(String(20), nullable=False)
    joined_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'moderator', 'agent', 'ai_agent')",
            name="ck_member_role",
        ),
        UniqueConstraint("organization_id", "user_id", name="uq_member_org_user"),
        Index("idx_members_org_role", "organization_id", "role"),
    )
