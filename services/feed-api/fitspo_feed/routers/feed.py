"""
Feed endpoints:
  GET /feed/recent                 — chronological home feed, optional filters
  GET /feed/hot                    — today's hot posts, one page
  GET /feed/hot/ranks              — today's cached top-N
  GET /feed/hot/ranks/{post_id}    — a post's rank badge
  GET /feed/explore                — filtered posts, most liked first

Paging: every page carries `cursor` and `composite_resume`; pass both back
(`cursor`, `composite`) to get the next page. A null cursor means the end.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from fitspo_feed.config import settings
from fitspo_feed.dependencies import (
    get_clock,
    get_feed_paginator,
    get_hot_paginator,
    get_rank_cache,
)
from fitspo_feed.errors import FeedError, InvalidArgument, StoreFetchFailed
from fitspo_feed.ranking import filters
from fitspo_feed.ranking.clock import resolve_timezone
from fitspo_feed.ranking.hot_feed import HotFeedPaginator
from fitspo_feed.ranking.paginator import FeedPaginator
from fitspo_feed.ranking.rank_cache import DailyRankCache
from fitspo_feed.schemas import (
    FeedPage,
    FeedPageResponse,
    FeedPostOut,
    PostRecord,
    RankEntry,
    RankListResponse,
    RankResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _http_error(exc: FeedError) -> HTTPException:
    if isinstance(exc, InvalidArgument):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, StoreFetchFailed):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Post store unavailable, try again",
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _post_out(post: PostRecord, score: Optional[int] = None, position: Optional[int] = None) -> FeedPostOut:
    return FeedPostOut(
        post_id=post.id,
        user_id=post.author_id,
        image_url=post.image_url,
        caption=post.caption,
        city=post.city,
        latitude=post.latitude,
        longitude=post.longitude,
        hashtags=post.hashtags,
        temp=post.temp,
        temp_fahrenheit=post.temp_fahrenheit,
        weather_icon=post.weather_icon,
        weather_symbol=post.weather_symbol,
        like_count=post.like_count,
        comment_count=post.comment_count,
        share_count=post.share_count,
        created_at=post.created_at,
        score=score,
        position=position,
    )


def _page_out(page: FeedPage, ranked: bool = False) -> FeedPageResponse:
    if ranked:
        posts = [
            _post_out(p, score=page.scores.get(p.id), position=i)
            for i, p in enumerate(page.posts, start=1)
        ]
    else:
        posts = [_post_out(p) for p in page.posts]
    return FeedPageResponse(
        posts=posts,
        cursor=page.cursor,
        composite_resume=page.composite_resume,
        approximate=page.approximate,
    )


@router.get("/recent", response_model=FeedPageResponse)
async def get_recent_feed(
    cursor: Optional[str] = Query(None),
    page_size: int = Query(settings.feed_page_size),
    city: Optional[str] = Query(None, description="Case-insensitive city substring"),
    hashtag: Optional[str] = Query(None),
    within_hours: Optional[float] = Query(None, gt=0),
    paginator: FeedPaginator = Depends(get_feed_paginator),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Chronological feed (newest first). Filters are applied to each fetched
    page, so a filtered page may be short — keep paging until cursor is null.
    """
    predicate = filters.all_of(
        filters.city_contains(city) if city else None,
        filters.has_hashtag(hashtag) if hashtag else None,
        filters.within_last(clock(), within_hours) if within_hours else None,
    )
    try:
        page = await paginator.fetch_page(cursor, page_size, predicate=predicate)
    except FeedError as exc:
        raise _http_error(exc) from exc
    return _page_out(page)


@router.get("/hot", response_model=FeedPageResponse)
async def get_hot_feed(
    cursor: Optional[str] = Query(None),
    page_size: int = Query(settings.hot_page_size),
    composite: bool = Query(False, description="composite_resume from the previous page"),
    paginator: HotFeedPaginator = Depends(get_hot_paginator),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Today's posts by likes + comments + shares, one post per author per page."""
    try:
        page = await paginator.fetch_hot_page(
            cursor,
            page_size,
            clock(),
            supports_composite_order_resume=composite,
        )
    except FeedError as exc:
        raise _http_error(exc) from exc
    return _page_out(page, ranked=True)


async def _refresh_ranks(cache: DailyRankCache, as_of: datetime) -> bool:
    """Refresh the rank cache; returns True when serving stale ranks.

    A store failure here is not fatal: stale badges beat no badges.
    """
    try:
        await cache.refresh_if_needed(as_of)
    except StoreFetchFailed as exc:
        logger.warning("Serving stale hot ranks (last refresh %s): %s", cache.last_refresh_date, exc)
        return True
    return False


@router.get("/hot/ranks", response_model=RankListResponse)
async def list_hot_ranks(
    cache: DailyRankCache = Depends(get_rank_cache),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    stale = await _refresh_ranks(cache, clock())
    day = cache.last_refresh_date
    ranks = cache.ranks
    return RankListResponse(
        day=day.isoformat() if day else None,
        stale=stale or day is None,
        ranks=[RankEntry(post_id=pid, rank=ranks[pid]) for pid in cache.top()],
    )


@router.get("/hot/ranks/{post_id}", response_model=RankResponse)
async def get_hot_rank(
    post_id: str,
    cache: DailyRankCache = Depends(get_rank_cache),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    stale = await _refresh_ranks(cache, clock())
    day = cache.last_refresh_date
    return RankResponse(
        post_id=post_id,
        rank=cache.rank(post_id),
        day=day.isoformat() if day else None,
        stale=stale or day is None,
    )


@router.get("/explore", response_model=list[FeedPostOut])
async def explore(
    city: Optional[str] = Query(None),
    within_hours: Optional[float] = Query(None, gt=0),
    season: Optional[str] = Query(None, description="spring | summer | fall | winter"),
    temp_band: Optional[str] = Query(None, description="cold | cool | warm | hot"),
    weather: Optional[str] = Query(None, description="sunny | cloudy"),
    located: bool = Query(False, description="Only posts with coordinates"),
    limit: int = Query(12, ge=1, le=100),
    paginator: FeedPaginator = Depends(get_feed_paginator),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Explore rows ("Top today", "New York", map filters): scan a few recent
    pages, keep the matches and return the most liked.
    """
    try:
        predicate = filters.all_of(
            filters.city_contains(city) if city else None,
            filters.within_last(clock(), within_hours) if within_hours else None,
            filters.in_season(season, resolve_timezone(settings.feed_timezone)) if season else None,
            filters.in_temp_band(temp_band) if temp_band else None,
            filters.matches_weather(weather) if weather else None,
            filters.has_coordinates() if located else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        matched, _ = await paginator.collect(predicate or (lambda post: True), limit)
    except FeedError as exc:
        raise _http_error(exc) from exc
    return [_post_out(p) for p in filters.top_by_likes(matched, limit)]
