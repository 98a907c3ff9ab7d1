"""
Caching utilities for the Hearth triage service.

- Redis client management
- Tenant-scoped exact-match response cache
"""

from libs.caching.redis_client import get_redis_client
from libs.caching.response_cache import CacheStats, ResponseCache

__all__ = ["CacheStats", "ResponseCache", "get_redis_client"]
