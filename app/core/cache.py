import json
import logging
from typing import Any, Dict, Optional
from uuid import UUID

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

RUBRIC_CACHE_PREFIX = "bant:rubric"


def rubric_cache_prefix(organization_id: UUID) -> str:
    """Prefix shared by every rubric cache key of one organization."""
    return f"{RUBRIC_CACHE_PREFIX}:{organization_id}:"


def rubric_cache_key(organization_id: UUID, agent_id: Optional[UUID] = None) -> str:
    """Cache key of the rubric *resolved* for an (organization, agent) pair."""
    return f"{rubric_cache_prefix(organization_id)}{agent_id or 'org'}"


class CacheService:
    """Thin wrapper around an async Redis client.

    If *redis_client* is ``None`` (Redis unavailable), every operation
    degrades to a no-op and callers fall through to the database.
    Redis errors are logged and swallowed: the cache is never the
    source of truth.
    """

    def __init__(self, redis_client: Optional[Redis] = None) -> None:
        self._redis: Optional[Redis] = redis_client

    async def get(self, key: str) -> Optional[str]:
        """Return the raw string value for *key*, or ``None``."""
        if self._redis is None:
            return None
        try:
            return await self._redis.get(key)
        except Exception:
            logger.warning("Redis GET failed for key %s", key)
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store a raw string value, optionally with a TTL (seconds)."""
        if self._redis is None:
            return
        try:
            if ttl:
                await self._redis.setex(key, ttl, value)
            else:
                await self._redis.set(key, value)
        except Exception:
            logger.warning("Redis SET failed for key %s", key)

    async def delete(self, *keys: str) -> None:
        """Remove *keys* from the cache (best-effort)."""
        if self._redis is None or not keys:
            return
        try:
            await self._redis.delete(*keys)
        except Exception:
            logger.warning("Redis DELETE failed for keys %s", ", ".join(keys))

    async def delete_prefix(self, prefix: str) -> None:
        """Remove every key starting with *prefix* (best-effort).

        Used when an organization-wide rubric changes: every agent that
        falls back to it has a cached copy of the old one.
        """
        if self._redis is None:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=f"{prefix}*")]
            if keys:
                await self._redis.delete(*keys)
        except Exception:
            logger.warning("Redis prefix DELETE failed for %s", prefix)

    # ------------------------------------------------------------------
    # JSON helpers
    # ------------------------------------------------------------------

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """Deserialise a JSON-encoded value from Redis."""
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Invalid JSON in cache key %s", key)
            return None

    async def set_json(
        self, key: str, data: Dict[str, Any], ttl: Optional[int] = None
    ) -> None:
        """Serialise *data* to JSON and store it in Redis."""
        try:
            payload = json.dumps(data, default=str)
        except (TypeError, ValueError):
            logger.warning("Failed to serialise data for cache key %s", key)
            return
        await self.set(key, payload, ttl=ttl)

    @property
    def is_available(self) -> bool:
        """Return ``True`` if a Redis client is configured."""
        return self._redis is not None
