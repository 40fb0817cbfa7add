import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select

from app.models.rubric_config import RubricConfigRecord
from app.repositories.base import BaseRepository
from app.schemas.rubric import RubricConfig

logger = logging.getLogger(__name__)

_CRITERIA_COLUMNS = (
    "budget_criteria",
    "authority_criteria",
    "need_criteria",
    "timeline_criteria",
    "contact_criteria",
)


def _agent_clause(agent_id: Optional[UUID]):
    if agent_id is None:
        return RubricConfigRecord.agent_id.is_(None)
    return RubricConfigRecord.agent_id == agent_id


class RubricConfigRepository(BaseRepository):
    """Encapsulates queries against the ``rubric_configs`` table."""

    async def get(
        self, organization_id: UUID, agent_id: Optional[UUID] = None
    ) -> Optional[RubricConfigRecord]:
        """Return the rubric stored for exactly this key, or ``None``."""
        result = await self._db.execute(
            select(RubricConfigRecord).where(
                RubricConfigRecord.organization_id == organization_id,
                _agent_clause(agent_id),
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        organization_id: UUID,
        agent_id: Optional[UUID],
        config: RubricConfig,
    ) -> RubricConfigRecord:
        """Insert or fully replace the rubric for a key.

        Does not commit; callers wrap this in ``atomic()`` so concurrent
        readers see either the old or the new configuration, never a mix.
        """
        data = config.model_dump(mode="json")
        record = await self.get(organization_id, agent_id)
        if record is None:
            record = RubricConfigRecord(
                organization_id=organization_id, agent_id=agent_id
            )
            self._db.add(record)
            logger.info(
                "Creating BANT rubric for organization %s (agent %s)",
                organization_id,
                agent_id,
            )

        for key, value in data.items():
            setattr(record, key, value)
        await self._db.flush()
        return record

    async def delete(self, organization_id: UUID, agent_id: Optional[UUID] = None) -> bool:
        """Delete the rubric for a key; return whether a row was removed."""
        result = await self._db.execute(
            delete(RubricConfigRecord).where(
                RubricConfigRecord.organization_id == organization_id,
                _agent_clause(agent_id),
            )
        )
        return bool(result.rowcount)

    @staticmethod
    def to_rubric(record: RubricConfigRecord) -> RubricConfig:
        """Rebuild the validated rubric stored on a row."""
        data = {
            column.name: getattr(record, column.name)
            for column in RubricConfigRecord.__table__.columns
            if column.name in RubricConfig.model_fields
        }
        for key in _CRITERIA_COLUMNS:
            data[key] = list(data.get(key) or [])
        data["questions"] = dict(data.get("questions") or {})
        return RubricConfig.model_validate(data)
