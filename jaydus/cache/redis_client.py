"""
Redis client configuration and connection management.
Redis is optional: every operation is a no-op when REDIS_URL is unset.
"""

from typing import Optional
import redis.asyncio as redis
from redis.asyncio import ConnectionPool
import structlog

from jaydus.core.config import settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """Async Redis client with connection pooling and error handling."""

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self.pool: Optional[ConnectionPool] = None
        self.client: Optional[redis.Redis] = None

    @property
    def url(self) -> Optional[str]:
        return self._url or settings.redis_url

    @property
    def enabled(self) -> bool:
        return bool(self.url) or self.client is not None

    async def connect(self):
        """Initialize Redis connection pool."""
        try:
            self.pool = ConnectionPool.from_url(
                self.url,
                max_connections=20,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            await self.client.ping()
            logger.info("Redis connection established successfully")

        except Exception as e:
            logger.error("Failed to connect to Redis", error=str(e))
            self.client = None
            raise

    async def disconnect(self):
        """Close Redis connections gracefully."""
        if self.client:
            await self.client.aclose()
            self.client = None
        if self.pool:
            await self.pool.disconnect()
            self.pool = None
        logger.info("Redis connections closed")

    async def _ensure_client(self) -> bool:
        if not self.enabled:
            return False
        if not self.client:
            await self.connect()
        return True

    async def increment(self, key: str, ttl: Optional[int] = None) -> Optional[int]:
        """Increment a counter, starting its expiry window on first hit."""
        try:
            if not await self._ensure_client():
                return None

            value = await self.client.incr(key)
            if value == 1 and ttl:
                await self.client.expire(key, ttl)
            return value

        except Exception as e:
            logger.error("Redis INCREMENT error", key=key, error=str(e))
            return None

    async def ping(self) -> bool:
        """Check connectivity to the Redis server."""
        try:
            if not await self._ensure_client():
                return False
            return await self.client.ping() is True
        except Exception as e:
            logger.error("Redis PING error", error=str(e))
            return False


# Global Redis client instance
redis_client = RedisClient()


class CacheKeys:
    """Cache key generators."""

    @staticmethod
    def rate_limit(user_id: str, endpoint: str) -> str:
        return f"rate_limit:{endpoint}:{user_id}"
