"""API-layer dependency functions.

Re-exports all dependency factories from ``app.dependencies`` so that
endpoint modules only need to import from ``app.api.deps``.
"""

from app.dependencies import (
    # Repository factories
    get_fact_repo,
    get_rubric_config_repo,
    get_member_repo,
    get_conversation_repo,
    # Service factories
    get_cache_service,
    get_rubric_validator,
    get_scoring_engine,
    get_assignment_balancer,
    get_fact_extractor,
    get_rubric_config_service,
    get_qualification_service,
    # Redis
    get_redis_client,
)

__all__ = [
    "get_fact_repo",
    "get_rubric_config_repo",
    "get_member_repo",
    "get_conversation_repo",
    "get_cache_service",
    "get_rubric_validator",
    "get_scoring_engine",
    "get_assignment_balancer",
    "get_fact_extractor",
    "get_rubric_config_service",
    "get_qualification_service",
    "get_redis_client",
]
