import pytest

from slotbook.core.redis import RedisClient


class BrokenRedis:
    async def set(self, *args, **kwargs):
        raise ConnectionError("redis down")

    async def get(self, key):
        raise ConnectionError("redis down")

    async def mget(self, keys):
        raise ConnectionError("redis down")

    async def delete(self, *keys):
        raise ConnectionError("redis down")


class TestSlotHoldStore:
    @pytest.mark.asyncio
    async def test_acquire_refresh_and_release(self, redis, fake_redis):
        keys = ["slot_hold:1:business:a", "slot_hold:1:business:b"]

        assert await redis.acquire_slot_hold(keys, "s1", 600)
        assert await redis.acquire_slot_hold(keys, "s1", 300)  # own hold is refreshed
        assert fake_redis.ttls[keys[0]] == 300
        assert await redis.slot_holders(keys + ["slot_hold:1:business:c"]) == {
            keys[0]: "s1",
            keys[1]: "s1",
        }

        assert await redis.release_slot_hold(keys, "s2") == 0
        assert await redis.release_slot_hold(keys, "s1") == 2
        assert await redis.slot_holders(keys) == {}

    @pytest.mark.asyncio
    async def test_partial_acquire_is_rolled_back(self, redis, fake_redis):
        await redis.acquire_slot_hold(["slot_hold:1:business:b"], "s1", 600)

        acquired = await redis.acquire_slot_hold(
            ["slot_hold:1:business:a", "slot_hold:1:business:b"], "s2", 600
        )

        assert not acquired
        assert fake_redis.store == {"slot_hold:1:business:b": "s1"}

    @pytest.mark.asyncio
    async def test_unreachable_redis(self):
        broken = RedisClient(client=BrokenRedis())

        assert await broken.slot_holders(["k"]) == {}
        assert not await broken.acquire_slot_hold(["k"], "s1", 600)
        assert await broken.release_slot_hold(["k"], "s1") == 0
