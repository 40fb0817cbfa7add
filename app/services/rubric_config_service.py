import logging
from typing import Any, Dict, Optional, Union
from uuid import UUID

from pydantic import ValidationError

from app.core.cache import CacheService, rubric_cache_key, rubric_cache_prefix
from app.core.config import settings
from app.core.exceptions import RubricConfigNotFoundError, RubricValidationError
from app.models.rubric_config import RubricConfigRecord
from app.repositories.rubric_config_repository import RubricConfigRepository
from app.schemas.rubric import (
    RubricConfig,
    RubricConfigInput,
    RubricConfigResponse,
    RubricValidationResponse,
)
from app.services.rubric_validator import RubricValidator, default_rubric

logger = logging.getLogger(__name__)


class RubricConfigService:
    """Stores, resolves and caches custom BANT rubrics.

    Resolution order for an (organization, agent) pair is the agent's
    own rubric, then the organization-wide rubric, then the system
    default.  The resolved rubric is cached in Redis; writes invalidate
    the cache only after the transaction has committed.
    """

    def __init__(
        self,
        repo: RubricConfigRepository,
        cache: Optional[CacheService] = None,
        validator: Optional[RubricValidator] = None,
    ) -> None:
        self._repo = repo
        self._cache: CacheService = cache or CacheService()
        self._validator = validator or RubricValidator()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def resolve(
        self, organization_id: UUID, agent_id: Optional[UUID] = None
    ) -> RubricConfig:
        """Return the rubric in force for this organization / agent."""
        cache_key = rubric_cache_key(organization_id, agent_id)
        cached = await self._cache.get_json(cache_key)
        if cached is not None:
            try:
                return RubricConfig.model_validate(cached)
            except ValidationError:
                logger.warning("Discarding malformed cached rubric %s", cache_key)

        record = await self._find(organization_id, agent_id)
        rubric = default_rubric() if record is None else self._repo.to_rubric(record)
        await self._cache.set_json(
            cache_key, rubric.model_dump(mode="json"), ttl=settings.RUBRIC_CACHE_TTL
        )
        return rubric

    async def get_effective(
        self, organization_id: UUID, agent_id: Optional[UUID] = None
    ) -> RubricConfigResponse:
        """Describe the rubric in force, including where it comes from."""
        record = await self._find(organization_id, agent_id)
        if record is None:
            return RubricConfigResponse(
                message="No custom BANT configuration; using system default",
                organization_id=organization_id,
                agent_id=None,
                is_default=True,
                config=default_rubric(),
            )
        return self._to_response(record, message="BANT configuration retrieved")

    async def get_stored(
        self, organization_id: UUID, agent_id: Optional[UUID] = None
    ) -> RubricConfig:
        """Return the rubric stored under exactly this key.

        Raises:
            RubricConfigNotFoundError: nothing is stored for the key.
        """
        record = await self._repo.get(organization_id, agent_id)
        if record is None:
            raise RubricConfigNotFoundError(
                self._not_found_detail(organization_id, agent_id)
            )
        return self._repo.to_rubric(record)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(
        self,
        organization_id: UUID,
        agent_id: Optional[UUID],
        config: Union[RubricConfigInput, Dict[str, Any]],
    ) -> RubricConfigResponse:
        """Validate and store a rubric, replacing any previous one.

        Raises:
            RubricValidationError: the rubric breaks one or more rules;
                nothing is written.
        """
        rubric = self._validator.validate(config)

        async with self._repo.atomic():
            record = await self._repo.upsert(organization_id, agent_id, rubric)

        await self._invalidate(organization_id, agent_id)
        logger.info(
            "Saved BANT configuration for organization %s (agent %s)",
            organization_id,
            agent_id,
        )
        return self._to_response(record, message="BANT configuration saved")

    async def delete(self, organization_id: UUID, agent_id: Optional[UUID] = None) -> None:
        """Remove a stored rubric; reads fall back to the next level.

        Raises:
            RubricConfigNotFoundError: nothing is stored for the key.
        """
        async with self._repo.atomic():
            removed = await self._repo.delete(organization_id, agent_id)
        if not removed:
            raise RubricConfigNotFoundError(
                self._not_found_detail(organization_id, agent_id)
            )

        await self._invalidate(organization_id, agent_id)
        logger.info(
            "Deleted BANT configuration for organization %s (agent %s)",
            organization_id,
            agent_id,
        )

    def check(
        self, config: Union[RubricConfigInput, Dict[str, Any]]
    ) -> RubricValidationResponse:
        """Dry-run validation: report issues and the generated description."""
        try:
            rubric = self._validator.validate(config)
        except RubricValidationError as exc:
            return RubricValidationResponse(valid=False, errors=exc.issues)
        return RubricValidationResponse(valid=True, scoring_prompt=rubric.scoring_prompt)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _find(
        self, organization_id: UUID, agent_id: Optional[UUID]
    ) -> Optional[RubricConfigRecord]:
        if agent_id is not None:
            record = await self._repo.get(organization_id, agent_id)
            if record is not None:
                return record
        return await self._repo.get(organization_id, None)

    async def _invalidate(self, organization_id: UUID, agent_id: Optional[UUID]) -> None:
        if agent_id is not None:
            await self._cache.delete(rubric_cache_key(organization_id, agent_id))
            return
        # Agents without their own rubric cached the organization-wide one
        await self._cache.delete_prefix(rubric_cache_prefix(organization_id))

    def _to_response(self, record: RubricConfigRecord, message: str) -> RubricConfigResponse:
        return RubricConfigResponse(
            message=message,
            organization_id=record.organization_id,
            agent_id=record.agent_id,
            is_default=False,
            updated_at=record.updated_at,
            config=self._repo.to_rubric(record),
        )

    @staticmethod
    def _not_found_detail(organization_id: UUID, agent_id: Optional[UUID]) -> str:
        if agent_id is None:
            return f"No BANT configuration stored for organization {organization_id}"
        return (
            f"No BANT configuration stored for agent {agent_id} "
            f"in organization {organization_id}"
        )
