"""
FastAPI dependencies.

The feed services are built once in main.lifespan and parked on app.state;
routes get them through these functions so tests can swap any of them with
app.dependency_overrides.
"""
from datetime import datetime
from typing import Callable

from fastapi import Request

from fitspo_feed.ranking.clock import utcnow
from fitspo_feed.ranking.hot_feed import HotFeedPaginator
from fitspo_feed.ranking.paginator import FeedPaginator
from fitspo_feed.ranking.rank_cache import DailyRankCache


def get_hot_paginator(request: Request) -> HotFeedPaginator:
    return request.app.state.hot_paginator


def get_feed_paginator(request: Request) -> FeedPaginator:
    return request.app.state.feed_paginator


def get_rank_cache(request: Request) -> DailyRankCache:
    return request.app.state.rank_cache


def get_clock() -> Callable[[], datetime]:
    return utcnow
