"""
Redis client wrapper.

Responsibilities:
  • Rank snapshots — HASH keyed by hotrank:{YYYY-MM-DD}
                     field = post_id, value = rank (1-based)

The first API worker to rebuild the daily rank cache publishes the result
here; other workers pick it up instead of scanning the post table again.
Snapshots are an optimisation: every Redis error is logged and treated as
"no snapshot", never surfaced to the feed.
"""
import logging
from datetime import date
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from fitspo_feed.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


# ─────────────────────── Rank Snapshots (HASH) ────────────────────────────

RANK_KEY = "hotrank:{day}"


class RankSnapshotStore:
    def __init__(self, redis: aioredis.Redis, ttl: Optional[int] = None) -> None:
        self.redis = redis
        self.ttl = ttl or settings.redis_rank_snapshot_ttl

    @staticmethod
    def key(day: date) -> str:
        return RANK_KEY.format(day=day.isoformat())

    async def load(self, day: date) -> Optional[dict[str, int]]:
        """Return the day's rank map, or None if there is none (or Redis is down)."""
        try:
            raw = await self.redis.hgetall(self.key(day))
        except RedisError as exc:
            logger.warning("Rank snapshot read failed for %s: %s", day, exc)
            return None
        if not raw:
            return None
        try:
            return {post_id: int(rank) for post_id, rank in raw.items()}
        except ValueError:
            logger.warning("Ignoring corrupt rank snapshot %s", self.key(day))
            return None

    async def save(self, day: date, ranks: dict[str, int]) -> None:
        key = self.key(day)
        try:
            pipe = self.redis.pipeline()
            pipe.delete(key)
            if ranks:
                pipe.hset(key, mapping={pid: str(rank) for pid, rank in ranks.items()})
                pipe.expire(key, self.ttl)
            await pipe.execute()
        except RedisError as exc:
            logger.warning("Rank snapshot write failed for %s: %s", day, exc)
            return
        logger.debug("Published rank snapshot %s (%d posts)", key, len(ranks))
