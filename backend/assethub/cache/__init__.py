"""
AssetHub Backend — Cache Package
=================================

Implementations of CacheService:
    - RedisCacheService:    shared network cache (production)
    - InMemoryCacheService: per-process dict with TTLs (single node, tests)
    - NoOpCacheService:     always misses (cache disabled or unreachable)
"""

from assethub.cache.base import CacheService, CacheTTLs, invalidate_quietly
from assethub.cache.memory import InMemoryCacheService
from assethub.cache.noop import NoOpCacheService
from assethub.cache.redis_cache import RedisCacheService

__all__ = [
    "CacheService",
    "CacheTTLs",
    "InMemoryCacheService",
    "NoOpCacheService",
    "RedisCacheService",
    "invalidate_quietly",
]
