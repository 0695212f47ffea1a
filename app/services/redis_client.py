# app/services/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.asyncio.lock import Lock

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Pooled redis.asyncio client, initialized on startup when REDIS_URL is set."""

    def __init__(self):
        self.pool = None
        self.client = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self, url: str | None = None):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        url = url or settings.REDIS_URL
        if not url:
            raise RuntimeError("REDIS_URL is not configured")

        try:
            logger.info("Attempting Redis connection", url_preview=url.split("@")[-1][:40])

            self.pool = ConnectionPool.from_url(
                url,
                max_connections=20,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True

        except Exception as e:
            logger.error("Failed to initialize Redis client", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def ping(self) -> bool:
        """Test Redis connection"""
        if not self._initialized:
            return False
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    def lock(self, name: str, timeout: float, blocking_timeout: float | None = None) -> Lock:
        """Distributed lock; use as ``async with client.lock(...)``."""
        if not self._initialized:
            raise ConnectionError("Redis client not available")
        return self.client.lock(name, timeout=timeout, blocking_timeout=blocking_timeout)


# Global instance
redis_client = RedisClient()
