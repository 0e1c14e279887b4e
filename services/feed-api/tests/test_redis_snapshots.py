from datetime import date

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from redis.exceptions import ConnectionError as RedisConnectionError

from fitspo_feed.clients.redis_client import RankSnapshotStore

DAY = date(2024, 5, 17)


class _DownRedis:
    async def hgetall(self, key):
        raise RedisConnectionError("connection refused")

    def pipeline(self):
        raise RedisConnectionError("connection refused")


@pytest_asyncio.fixture
async def fake_redis():
    client = FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.mark.asyncio
async def test_save_then_load(fake_redis):
    snapshots = RankSnapshotStore(fake_redis, ttl=60)

    await snapshots.save(DAY, {"a": 1, "b": 2})

    assert await snapshots.load(DAY) == {"a": 1, "b": 2}
    assert 0 < await fake_redis.ttl("hotrank:2024-05-17") <= 60


@pytest.mark.asyncio
async def test_save_replaces_previous_snapshot(fake_redis):
    snapshots = RankSnapshotStore(fake_redis)
    await snapshots.save(DAY, {"a": 1, "b": 2})

    await snapshots.save(DAY, {"c": 1})

    assert await snapshots.load(DAY) == {"c": 1}


@pytest.mark.asyncio
async def test_missing_snapshot_is_none(fake_redis):
    assert await RankSnapshotStore(fake_redis).load(DAY) is None


@pytest.mark.asyncio
async def test_corrupt_snapshot_is_ignored(fake_redis):
    await fake_redis.hset("hotrank:2024-05-17", mapping={"a": "first"})
    assert await RankSnapshotStore(fake_redis).load(DAY) is None


@pytest.mark.asyncio
async def test_redis_outage_is_not_fatal():
    snapshots = RankSnapshotStore(_DownRedis(), ttl=60)

    assert await snapshots.load(DAY) is None
    await snapshots.save(DAY, {"a": 1})
