"""
FitSpo Feed API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create the posts table if not present
  3. Connect to Redis (optional — rank snapshots are skipped without it)
  4. Build the feed services once and park them on app.state:
       SqlPostStore → HotFeedPaginator → DailyRankCache
                    → FeedPaginator
  5. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app
from redis.exceptions import RedisError

from fitspo_feed.config import settings
from fitspo_feed.database import AsyncSessionLocal, engine, init_db
from fitspo_feed.telemetry import setup_tracing, instrument_app
from fitspo_feed.clients.redis_client import RankSnapshotStore, close_redis, init_redis
from fitspo_feed.ranking.clock import resolve_timezone
from fitspo_feed.ranking.hot_feed import HotFeedPaginator
from fitspo_feed.ranking.paginator import FeedPaginator
from fitspo_feed.ranking.rank_cache import DailyRankCache
from fitspo_feed.routers import feed
from fitspo_feed.stores.sql import SqlPostStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


async def _connect_snapshots() -> RankSnapshotStore | None:
    if not settings.redis_rank_snapshot_enabled:
        return None
    try:
        redis = await init_redis()
    except (RedisError, OSError) as exc:
        logger.warning("Redis unavailable (%s) — rank snapshots disabled", exc)
        return None
    return RankSnapshotStore(redis)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the feed services and manage their connections."""
    logger.info("Starting FitSpo Feed API (env=%s)", settings.environment)

    await init_db()
    snapshots = await _connect_snapshots()

    tz = resolve_timezone(settings.feed_timezone)
    store = SqlPostStore(AsyncSessionLocal)
    hot_paginator = HotFeedPaginator(store, tz=tz)

    app.state.hot_paginator = hot_paginator
    app.state.feed_paginator = FeedPaginator(store)
    app.state.rank_cache = DailyRankCache(hot_paginator, tz=tz, snapshots=snapshots)

    logger.info("Feed services ready (timezone=%s).", settings.feed_timezone)
    yield

    logger.info("Shutting down...")
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="FitSpo Feed API",
    description="Chronological, explore and hot-today feeds with daily rank badges.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(feed.router, prefix="/feed", tags=["Feed"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics — scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
