"""Redis read-through cache for derived diagnostic reads."""
import logging
from typing import Optional, Type, TypeVar

import redis
from pydantic import BaseModel

from app.config import get_settings

logger = logging.getLogger(__name__)
T = TypeVar("T", bound=BaseModel)


class RedisCache:
    """Redis cache of pydantic response models.

    Failures are logged and treated as misses; the database stays the source
    of truth.
    """

    def __init__(self, host: str, port: int, db: int = 0, client: Optional[redis.Redis] = None):
        self.client = client or redis.Redis(
            host=host,
            port=port,
            db=db,
            decode_responses=True
        )

    async def health_check(self) -> tuple[bool, Optional[str]]:
        """Check if Redis connection is healthy."""
        try:
            self.client.ping()
            return True, None
        except Exception as e:
            return False, str(e)

    def get(self, key: str, model: Type[T]) -> Optional[T]:
        """Get cached item and deserialize to Pydantic model."""
        try:
            data = self.client.get(key)
            if data:
                return model.model_validate_json(data)
            return None
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: BaseModel, ttl_seconds: int) -> bool:
        """Cache Pydantic model with TTL."""
        try:
            self.client.setex(key, ttl_seconds, value.model_dump_json())
            return True
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    def delete(self, *keys: str) -> bool:
        """Invalidate cache entries."""
        try:
            if keys:
                self.client.delete(*keys)
            return True
        except Exception as e:
            logger.warning(f"Cache delete error for {keys}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Invalidate all keys matching pattern."""
        try:
            count = 0
            for key in self.client.scan_iter(match=pattern):
                self.client.delete(key)
                count += 1
            return count
        except Exception as e:
            logger.warning(f"Cache delete pattern error for {pattern}: {e}")
            return 0

    def invalidate_assessment(self, assessment_id: str, company_id: Optional[str] = None) -> None:
        """Drop every cached read derived from one assessment."""
        self.delete(CacheKeys.results(assessment_id))
        self.delete_pattern(CacheKeys.snapshot_pattern(assessment_id))
        if company_id:
            self.delete(CacheKeys.company_snapshots(company_id))


class CacheKeys:
    """Cache key constants and builders."""
    RESULTS = "full:results"
    SNAPSHOT = "full:snapshot"
    COMPANY_SNAPSHOTS = "full:company_snapshots"

    @staticmethod
    def results(assessment_id: str) -> str:
        return f"full:results:{assessment_id}"

    @staticmethod
    def snapshot(assessment_id: str, full_version: int) -> str:
        return f"full:snapshot:{assessment_id}:{full_version}"

    @staticmethod
    def snapshot_pattern(assessment_id: str) -> str:
        return f"full:snapshot:{assessment_id}:*"

    @staticmethod
    def company_snapshots(company_id: str) -> str:
        return f"full:company_snapshots:{company_id}"


# Singleton instance
_redis_cache: Optional[RedisCache] = None


def get_redis_cache() -> RedisCache:
    """Get or create Redis cache singleton."""
    global _redis_cache
    if _redis_cache is None:
        settings = get_settings()
        _redis_cache = RedisCache(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db
        )
    return _redis_cache
