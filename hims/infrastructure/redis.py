from typing import Optional, Dict, Any
import logging
from datetime import datetime
import uuid

import redis.asyncio as redis
from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisManager:
    """Redis connection manager"""

    def __init__(self):
        self._redis_client: Optional[Redis] = None
        self._is_connected = False

    async def connect(self, redis_url: str) -> None:
        """Establish Redis connection"""
        try:
            self._redis_client = redis.from_url(
                redis_url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                socket_timeout=5,
                socket_connect_timeout=5,
                health_check_interval=30
            )

            await self._redis_client.ping()
            self._is_connected = True
            logger.info("Redis connection established")

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._is_connected = False
            raise

    async def disconnect(self) -> None:
        """Close Redis connection"""
        if self._redis_client:
            await self._redis_client.aclose()
            self._is_connected = False
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def client(self) -> Redis:
        """Get Redis client"""
        if not self._is_connected or not self._redis_client:
            raise RuntimeError("Redis is not connected")
        return self._redis_client

    async def is_healthy(self) -> bool:
        """Check Redis health"""
        try:
            if self._redis_client:
                await self._redis_client.ping()
                return True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
        return False


# Global Redis manager instance
redis_manager = RedisManager()


class RateLimitService:
    """Sliding-window rate limiting on a sorted set per key"""

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def is_allowed(
        self,
        key: str,
        limit: int,
        window: int,
        identifier: Optional[str] = None
    ) -> Dict[str, Any]:
        """Check if request is allowed based on rate limit"""
        rate_limit_key = f"rate_limit:{key}:{identifier}" if identifier else f"rate_limit:{key}"

        current_time = datetime.utcnow().timestamp()
        window_start = current_time - window

        await self.redis.zremrangebyscore(rate_limit_key, 0, window_start)
        current_count = await self.redis.zcard(rate_limit_key)

        if current_count >= limit:
            oldest_request = await self.redis.zrange(rate_limit_key, 0, 0, withscores=True)
            retry_after = window
            if oldest_request:
                oldest_time = oldest_request[0][1]
                retry_after = int(oldest_time + window - current_time) + 1

            return {
                "allowed": False,
                "limit": limit,
                "remaining": 0,
                "reset_time": int(current_time + window),
                "retry_after": max(retry_after, 1)
            }

        # Member must be unique even for requests in the same instant
        await self.redis.zadd(rate_limit_key, {f"{current_time}:{uuid.uuid4().hex}": current_time})
        await self.redis.expire(rate_limit_key, window)

        return {
            "allowed": True,
            "limit": limit,
            "remaining": limit - current_count - 1,
            "reset_time": int(current_time + window),
            "retry_after": 0
        }


async def init_redis(redis_url: str) -> None:
    await redis_manager.connect(redis_url)


async def close_redis() -> None:
    await redis_manager.disconnect()
