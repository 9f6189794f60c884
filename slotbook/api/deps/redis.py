from slotbook.core.redis import RedisClient, redis_client


async def get_redis_client() -> RedisClient:
    """Slot hold store; overridden in tests."""
    return redis_client
