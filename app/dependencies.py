import logging
from typing import Optional

from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.services.agent_assignment import AssignmentBalancer
from app.services.bant_scoring import BantScoringEngine
from app.services.extraction_client import ExtractionClient
from app.services.fact_extractor import FactExtractor
from app.services.rubric_validator import RubricValidator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Optional[Redis]:
    """Get an async Redis client, or ``None`` when Redis is unreachable."""
    try:
        client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable – rubric caching disabled for this request")
        return None


# ---------------------------------------------------------------------------
# Repository factory functions (one per repository, each gets the shared db)
# ---------------------------------------------------------------------------


async def get_fact_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.fact_repository import FactRepository

    return FactRepository(db)


async def get_rubric_config_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.rubric_config_repository import RubricConfigRepository

    return RubricConfigRepository(db)


async def get_member_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.member_repository import MemberRepository

    return MemberRepository(db)


async def get_conversation_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.conversation_repository import ConversationRepository

    return ConversationRepository(db)


# ---------------------------------------------------------------------------
# Cache service factory
# ---------------------------------------------------------------------------


async def get_cache_service(
    redis_client: Optional[Redis] = Depends(get_redis_client),
):
    """Build a :class:`CacheService` backed by the shared Redis client."""
    from app.core.cache import CacheService

    return CacheService(redis_client=redis_client)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_rubric_validator() -> RubricValidator:
    return RubricValidator()


async def get_scoring_engine() -> BantScoringEngine:
    return BantScoringEngine()


async def get_assignment_balancer() -> AssignmentBalancer:
    return AssignmentBalancer()


async def get_fact_extractor() -> FactExtractor:
    """Build a :class:`FactExtractor` over the configured OpenAI model."""
    return FactExtractor(client=ExtractionClient())


async def get_rubric_config_service(
    repo=Depends(get_rubric_config_repo),
    cache=Depends(get_cache_service),
    validator: RubricValidator = Depends(get_rubric_validator),
):
    """Build a :class:`RubricConfigService` with injected dependencies."""
    from app.services.rubric_config_service import RubricConfigService

    return RubricConfigService(repo=repo, cache=cache, validator=validator)


async def get_qualification_service(
    extractor: FactExtractor = Depends(get_fact_extractor),
    scoring_engine: BantScoringEngine = Depends(get_scoring_engine),
    balancer: AssignmentBalancer = Depends(get_assignment_balancer),
    rubric_service=Depends(get_rubric_config_service),
):
    """Build a :class:`QualificationService` with injected dependencies."""
    from app.services.qualification_service import QualificationService

    return QualificationService(
        extractor=extractor,
        scoring_engine=scoring_engine,
        balancer=balancer,
        rubric_service=rubric_service,
    )
