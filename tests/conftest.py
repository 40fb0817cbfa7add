from datetime import datetime, timezone
from typing import TYPE_CHECKING, AsyncGenerator
from unittest.mock import AsyncMock

if TYPE_CHECKING:
    from app.core.cache import CacheService

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.schemas.facts import ContactInfo, FactRecord


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "CacheService":
    """Return a ``CacheService`` backed by the mock Redis client."""
    from app.core.cache import CacheService

    return CacheService(redis_client=mock_redis)


@pytest.fixture
def qualified_facts() -> FactRecord:
    """Every required field filled: the canonical priority lead."""
    return FactRecord(
        budget="$20-25M",
        authority="sole decision maker",
        need="immediate",
        timeline="this_month",
        contact=ContactInfo(
            full_name="Jane Doe",
            phone="+971501234567",
            email="jane.doe@gmail.com",
        ),
    )


@pytest.fixture
def completed_facts(qualified_facts: FactRecord) -> FactRecord:
    return qualified_facts.model_copy(
        update={"completed_at": datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)}
    )
