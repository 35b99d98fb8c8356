"""Services package - storage, cache, and audit services."""
from .redis_cache import RedisCache, CacheKeys, get_redis_cache
from .repository import DiagnosticRepository, InsertResult, PlanRowInput, get_repository
from .audit import AuditService

__all__ = [
    "RedisCache",
    "CacheKeys",
    "get_redis_cache",
    "DiagnosticRepository",
    "InsertResult",
    "PlanRowInput",
    "get_repository",
    "AuditService",
]
