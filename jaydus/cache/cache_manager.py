"""
High-level cache manager. Currently only per-user rate limiting.
"""

from typing import Optional
import structlog

from jaydus.cache.redis_client import redis_client, RedisClient, CacheKeys
from jaydus.core.config import settings

logger = structlog.get_logger(__name__)


class CacheManager:
    """High-level cache manager for domain-specific operations."""

    def __init__(self, redis: Optional[RedisClient] = None):
        self.redis = redis or redis_client

    async def hit_rate_limit(self, user_id: str, endpoint: str, limit: Optional[int] = None) -> bool:
        """
        Count one request and report whether the caller is still within the limit.
        Fails open: returns True when Redis is disabled or unreachable.
        """
        limit = limit or settings.rate_limit_requests
        key = CacheKeys.rate_limit(user_id, endpoint)

        count = await self.redis.increment(key, ttl=settings.rate_limit_window)
        if count is None:
            return True

        if count > limit:
            logger.warning("Rate limit exceeded", user_id=user_id, endpoint=endpoint, count=count)
            return False
        return True


# Global cache manager instance
cache_manager = CacheManager()
