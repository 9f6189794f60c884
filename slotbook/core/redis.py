from typing import Optional

import redis.asyncio as redis
import structlog

from slotbook.core.config import settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """Redis client for short-lived slot holds."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis_pool = None
        self._client = client

    async def init_redis(self):
        """Initialize Redis connection pool."""
        try:
            self.redis_pool = redis.ConnectionPool.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
                socket_keepalive_options={},
            )

            async with redis.Redis(connection_pool=self.redis_pool) as r:
                await r.ping()
                logger.info("Redis connection established")

        except Exception as e:
            logger.error("Failed to connect to Redis", exc_info=e)
            raise

    async def get_redis(self) -> redis.Redis:
        """Get Redis client instance."""
        if self._client is not None:
            return self._client
        if not self.redis_pool:
            await self.init_redis()
        return redis.Redis(connection_pool=self.redis_pool)

    async def acquire_slot_hold(
        self, keys: list[str], session_id: str, ttl_seconds: int
    ) -> bool:
        """Hold every grid cell in ``keys`` for ``session_id``.

        All-or-nothing: cells already acquired are released again when one of
        them belongs to another session. Cells the session already owns are
        refreshed.
        """
        acquired: list[str] = []
        try:
            client = await self.get_redis()
            for key in keys:
                if await client.set(key, session_id, nx=True, ex=ttl_seconds):
                    acquired.append(key)
                    continue
                holder = await client.get(key)
                if holder == session_id:
                    await client.set(key, session_id, ex=ttl_seconds)
                    continue
                logger.info(
                    "Slot hold refused", key=key, session_id=session_id, holder=holder
                )
                for owned in acquired:
                    await client.delete(owned)
                return False
            return True
        except Exception as e:
            logger.error("Redis slot hold error", keys=keys, exc_info=e)
            return False

    async def release_slot_hold(self, keys: list[str], session_id: str) -> int:
        """Release the cells in ``keys`` owned by ``session_id``."""
        released = 0
        try:
            client = await self.get_redis()
            for key in keys:
                if await client.get(key) == session_id:
                    released += await client.delete(key)
        except Exception as e:
            logger.error("Redis slot release error", keys=keys, exc_info=e)
        return released

    async def slot_holders(self, keys: list[str]) -> dict[str, str]:
        """Map each held key to the session holding it."""
        if not keys:
            return {}
        try:
            client = await self.get_redis()
            values = await client.mget(keys)
        except Exception as e:
            logger.error("Redis slot lookup error", keys=keys, exc_info=e)
            return {}
        return {key: value for key, value in zip(keys, values) if value is not None}


# Global Redis client instance
redis_client = RedisClient()
