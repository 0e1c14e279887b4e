from datetime import timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fitspo_feed.dependencies import (
    get_clock,
    get_feed_paginator,
    get_hot_paginator,
    get_rank_cache,
)
from fitspo_feed.main import app
from fitspo_feed.ranking.hot_feed import HotFeedPaginator
from fitspo_feed.ranking.paginator import FeedPaginator
from fitspo_feed.ranking.rank_cache import DailyRankCache

from conftest import AS_OF
from stubs import make_post


@pytest_asyncio.fixture
async def services(store):
    hot = HotFeedPaginator(store, tz=timezone.utc)
    state = SimpleNamespace(
        store=store,
        hot=hot,
        recent=FeedPaginator(store),
        cache=DailyRankCache(hot, tz=timezone.utc),
        now=AS_OF,
    )
    app.dependency_overrides[get_hot_paginator] = lambda: state.hot
    app.dependency_overrides[get_feed_paginator] = lambda: state.recent
    app.dependency_overrides[get_rank_cache] = lambda: state.cache
    app.dependency_overrides[get_clock] = lambda: (lambda: state.now)
    try:
        yield state
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def api_client(services):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


def _seed_hot(store):
    for i, likes in enumerate([10, 10, 5, 5, 5]):
        store.add(make_post(f"p{i}", minutes_ago=i * 10, likes=likes))


@pytest.mark.asyncio
async def test_health(api_client):
    resp = await api_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "feed-api"}


@pytest.mark.asyncio
async def test_hot_feed_pages_with_positions_and_scores(api_client, store):
    _seed_hot(store)

    resp = await api_client.get("/feed/hot", params={"page_size": 3})
    assert resp.status_code == 200
    body = resp.json()
    assert [p["post_id"] for p in body["posts"]] == ["p0", "p1", "p2"]
    assert [p["position"] for p in body["posts"]] == [1, 2, 3]
    assert [p["score"] for p in body["posts"]] == [10, 10, 5]
    assert body["composite_resume"] is True
    assert body["approximate"] is False

    resp = await api_client.get(
        "/feed/hot",
        params={"page_size": 3, "cursor": body["cursor"], "composite": body["composite_resume"]},
    )
    body = resp.json()
    assert [p["post_id"] for p in body["posts"]] == ["p3", "p4"]
    assert body["cursor"] is None


@pytest.mark.asyncio
async def test_hot_feed_rejects_bad_page_size(api_client, store):
    _seed_hot(store)
    resp = await api_client.get("/feed/hot", params={"page_size": 0})
    assert resp.status_code == 400
    assert store.calls == []


@pytest.mark.asyncio
async def test_hot_feed_rejects_malformed_cursor(api_client):
    resp = await api_client.get("/feed/hot", params={"cursor": "garbage"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_store_outage_is_503(api_client, store):
    store.fail_with = ConnectionError("offline")
    resp = await api_client.get("/feed/hot")
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_recent_feed_with_city_filter(api_client, store):
    store.add(
        make_post("p1", minutes_ago=1, city="Austin"),
        make_post("p2", minutes_ago=2, city="Miami"),
        make_post("p3", minutes_ago=3, city="North Miami"),
    )

    resp = await api_client.get("/feed/recent", params={"city": "miami"})

    assert resp.status_code == 200
    body = resp.json()
    assert [p["post_id"] for p in body["posts"]] == ["p2", "p3"]
    assert body["posts"][0]["position"] is None
    assert body["cursor"] is None


@pytest.mark.asyncio
async def test_rank_badge_and_stale_fallback(api_client, services, store):
    _seed_hot(store)

    resp = await api_client.get("/feed/hot/ranks/p0")
    assert resp.json() == {"post_id": "p0", "rank": 1, "day": "2024-05-17", "stale": False}

    resp = await api_client.get("/feed/hot/ranks/nope")
    assert resp.json()["rank"] is None

    services.now = AS_OF + timedelta(days=1)
    store.fail_with = ConnectionError("offline")

    resp = await api_client.get("/feed/hot/ranks/p0")
    assert resp.status_code == 200
    assert resp.json() == {"post_id": "p0", "rank": 1, "day": "2024-05-17", "stale": True}


@pytest.mark.asyncio
async def test_rank_list(api_client, store):
    _seed_hot(store)

    resp = await api_client.get("/feed/hot/ranks")

    body = resp.json()
    assert body["day"] == "2024-05-17"
    assert body["stale"] is False
    assert body["ranks"] == [
        {"post_id": f"p{i}", "rank": i + 1} for i in range(5)
    ]


@pytest.mark.asyncio
async def test_rank_list_without_any_refresh_is_stale(api_client, store):
    store.fail_with = ConnectionError("offline")

    resp = await api_client.get("/feed/hot/ranks")

    assert resp.status_code == 200
    assert resp.json() == {"day": None, "stale": True, "ranks": []}


@pytest.mark.asyncio
async def test_explore_filters_then_sorts_by_likes(api_client, store):
    store.add(
        make_post("cold", minutes_ago=1, likes=50, temp=-2.0),
        make_post("warm-a", minutes_ago=2, likes=3, temp=20.0),
        make_post("warm-b", minutes_ago=3, likes=8, temp=22.0),
        make_post("warm-c", minutes_ago=4, likes=1, temp=24.0),
    )

    resp = await api_client.get("/feed/explore", params={"temp_band": "warm", "limit": 2})

    assert resp.status_code == 200
    assert [p["post_id"] for p in resp.json()] == ["warm-b", "warm-a"]


@pytest.mark.asyncio
async def test_explore_rejects_unknown_season(api_client):
    resp = await api_client.get("/feed/explore", params={"season": "monsoon"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_recency_cursor_flagged_composite_is_400(api_client, store):
    _seed_hot(store)

    resp = await api_client.get(
        "/feed/hot", params={"cursor": "recency|p0", "composite": True}
    )

    assert resp.status_code == 400
    assert store.calls == []


@pytest.mark.asyncio
async def test_posts_carry_weather(api_client, store):
    store.add(make_post("p1", temp=20.0, weather_icon="02d"), make_post("p2", minutes_ago=1))

    resp = await api_client.get("/feed/recent")

    first, second = resp.json()["posts"]
    assert first["temp"] == 20.0
    assert first["temp_fahrenheit"] == pytest.approx(68.0)
    assert first["weather_icon"] == "02d"
    assert first["weather_symbol"] == "cloud.sun"
    assert second["temp"] is None
    assert second["weather_symbol"] is None
