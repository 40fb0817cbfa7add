import copy
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from app.core.cache import CacheService, rubric_cache_key, rubric_cache_prefix
from app.core.default_rubric import DEFAULT_RUBRIC
from app.core.exceptions import RubricConfigNotFoundError, RubricValidationError
from app.models.rubric_config import RubricConfigRecord
from app.repositories.rubric_config_repository import RubricConfigRepository
from app.services.rubric_config_service import RubricConfigService
from app.services.rubric_validator import RubricValidator, default_rubric

ORG_ID = uuid4()
AGENT_ID = uuid4()


def _record(agent_id=None, **overrides) -> RubricConfigRecord:
    data = copy.deepcopy(DEFAULT_RUBRIC)
    data.update(overrides)
    rubric = RubricValidator().validate(data)
    record = RubricConfigRecord(
        organization_id=ORG_ID,
        agent_id=agent_id,
        **rubric.model_dump(mode="json"),
    )
    record.updated_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return record


def _repo(records=None) -> MagicMock:
    """Repository double keyed by agent id (``None`` = organization-wide)."""
    records = records or {}
    repo = MagicMock()
    repo.get = AsyncMock(side_effect=lambda org, agent=None: records.get(agent))
    repo.upsert = AsyncMock(
        side_effect=lambda org, agent, rubric: RubricConfigRecord(
            organization_id=org, agent_id=agent, **rubric.model_dump(mode="json")
        )
    )
    repo.delete = AsyncMock(return_value=True)
    repo.to_rubric = RubricConfigRepository.to_rubric
    repo.committed = False

    @asynccontextmanager
    async def atomic():
        yield
        repo.committed = True

    repo.atomic = atomic
    return repo


class TestResolve:
    @pytest.mark.asyncio
    async def test_agent_rubric_wins(self, mock_cache):
        records = {
            AGENT_ID: _record(AGENT_ID, warm_threshold=40),
            None: _record(None, warm_threshold=45),
        }
        service = RubricConfigService(_repo(records), cache=mock_cache)

        rubric = await service.resolve(ORG_ID, AGENT_ID)

        assert rubric.warm_threshold == 40

    @pytest.mark.asyncio
    async def test_falls_back_to_organization_rubric(self, mock_cache):
        service = RubricConfigService(
            _repo({None: _record(None, warm_threshold=45)}), cache=mock_cache
        )

        rubric = await service.resolve(ORG_ID, AGENT_ID)

        assert rubric.warm_threshold == 45

    @pytest.mark.asyncio
    async def test_falls_back_to_default(self, mock_cache):
        service = RubricConfigService(_repo(), cache=mock_cache)

        assert await service.resolve(ORG_ID) == default_rubric()

    @pytest.mark.asyncio
    async def test_resolved_rubric_is_cached(self, mock_cache, mock_redis):
        service = RubricConfigService(_repo(), cache=mock_cache)

        await service.resolve(ORG_ID, AGENT_ID)

        key, ttl, _ = mock_redis.setex.await_args.args
        assert key == rubric_cache_key(ORG_ID, AGENT_ID)
        assert ttl == 300

    @pytest.mark.asyncio
    async def test_cache_hit_skips_database(self, mock_cache, mock_redis):
        cached = default_rubric().model_copy(update={"warm_threshold": 42})
        mock_redis.get = AsyncMock(return_value=cached.model_dump_json())
        repo = _repo()
        service = RubricConfigService(repo, cache=mock_cache)

        rubric = await service.resolve(ORG_ID)

        assert rubric.warm_threshold == 42
        repo.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_works_without_redis(self):
        service = RubricConfigService(_repo())

        assert await service.resolve(ORG_ID) == default_rubric()


class TestSave:
    @pytest.mark.asyncio
    async def test_valid_rubric_is_stored_and_cache_invalidated(self, mock_cache, mock_redis):
        repo = _repo()
        service = RubricConfigService(repo, cache=mock_cache)
        payload = copy.deepcopy(DEFAULT_RUBRIC)

        response = await service.save(ORG_ID, AGENT_ID, payload)

        assert repo.committed
        assert response.organization_id == ORG_ID
        assert response.agent_id == AGENT_ID
        assert not response.is_default
        assert response.config.scoring_prompt.startswith("BANT SCORING CRITERIA")
        mock_redis.delete.assert_awaited_once_with(rubric_cache_key(ORG_ID, AGENT_ID))

    @pytest.mark.asyncio
    async def test_invalid_rubric_writes_nothing(self, mock_cache):
        repo = _repo()
        service = RubricConfigService(repo, cache=mock_cache)
        payload = copy.deepcopy(DEFAULT_RUBRIC)
        payload["contact_weight"] = 9

        with pytest.raises(RubricValidationError):
            await service.save(ORG_ID, None, payload)

        repo.upsert.assert_not_awaited()
        assert not repo.committed

    @pytest.mark.asyncio
    async def test_org_wide_save_invalidates_every_agent(self, mock_redis):
        keys = [rubric_cache_key(ORG_ID), rubric_cache_key(ORG_ID, AGENT_ID)]

        async def scan_iter(match):
            assert match == f"{rubric_cache_prefix(ORG_ID)}*"
            for key in keys:
                yield key

        mock_redis.scan_iter = scan_iter
        service = RubricConfigService(_repo(), cache=CacheService(mock_redis))

        await service.save(ORG_ID, None, copy.deepcopy(DEFAULT_RUBRIC))

        mock_redis.delete.assert_awaited_once_with(*keys)


class TestDeleteAndGet:
    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, mock_cache):
        repo = _repo()
        repo.delete = AsyncMock(return_value=False)
        service = RubricConfigService(repo, cache=mock_cache)

        with pytest.raises(RubricConfigNotFoundError):
            await service.delete(ORG_ID, AGENT_ID)

    @pytest.mark.asyncio
    async def test_delete_invalidates_cache(self, mock_cache, mock_redis):
        service = RubricConfigService(_repo(), cache=mock_cache)

        await service.delete(ORG_ID, AGENT_ID)

        mock_redis.delete.assert_awaited_once_with(rubric_cache_key(ORG_ID, AGENT_ID))

    @pytest.mark.asyncio
    async def test_get_stored_missing_raises(self, mock_cache):
        service = RubricConfigService(_repo(), cache=mock_cache)

        with pytest.raises(RubricConfigNotFoundError):
            await service.get_stored(ORG_ID)

    @pytest.mark.asyncio
    async def test_get_effective_reports_default(self, mock_cache):
        service = RubricConfigService(_repo(), cache=mock_cache)

        response = await service.get_effective(ORG_ID, AGENT_ID)

        assert response.is_default
        assert response.config == default_rubric()


class TestCheck:
    def test_valid_rubric(self):
        result = RubricConfigService(_repo()).check(copy.deepcopy(DEFAULT_RUBRIC))

        assert result.valid
        assert result.errors == []
        assert result.scoring_prompt

    def test_invalid_rubric_lists_errors(self):
        payload = copy.deepcopy(DEFAULT_RUBRIC)
        payload["hot_threshold"] = 90

        result = RubricConfigService(_repo()).check(payload)

        assert not result.valid
        assert [e.field for e in result.errors] == ["thresholds"]
        assert result.scoring_prompt is None
