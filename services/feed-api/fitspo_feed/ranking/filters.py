"""
Client-side post predicates used by the explore and map screens.

All of them run after a page has been fetched (see paginator.collect), so
they see exactly what the store returned and nothing else.
"""
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, Optional

from fitspo_feed.ranking.paginator import Predicate
from fitspo_feed.schemas import PostRecord

SEASON_MONTHS = {
    "spring": {3, 4, 5},
    "summer": {6, 7, 8},
    "fall": {9, 10, 11},
    "winter": {12, 1, 2},
}

# Fahrenheit, lower bound inclusive
TEMP_BANDS = {
    "cold": (None, 40),
    "cool": (40, 60),
    "warm": (60, 80),
    "hot": (80, None),
}

WEATHER_KINDS = ("sunny", "cloudy")


def all_of(*predicates: Optional[Predicate]) -> Optional[Predicate]:
    active = [p for p in predicates if p is not None]
    if not active:
        return None
    if len(active) == 1:
        return active[0]
    return lambda post: all(p(post) for p in active)


def city_contains(city: str) -> Predicate:
    needle = city.strip().casefold()
    return lambda post: needle in (post.city or "").casefold()


def created_since(since: datetime) -> Predicate:
    return lambda post: post.created_at > since


def within_last(as_of: datetime, hours: float) -> Predicate:
    return created_since(as_of - timedelta(hours=hours))


def has_coordinates() -> Predicate:
    return lambda post: post.has_coordinates


def has_hashtag(tag: str) -> Predicate:
    wanted = tag.lstrip("#").casefold()
    return lambda post: any(t.lstrip("#").casefold() == wanted for t in post.hashtags)


def in_season(season: str, tz: tzinfo) -> Predicate:
    try:
        months = SEASON_MONTHS[season]
    except KeyError:
        raise ValueError(f"unknown season {season!r}") from None
    return lambda post: post.created_at.astimezone(tz).month in months


def in_temp_band(band: str) -> Predicate:
    try:
        low, high = TEMP_BANDS[band]
    except KeyError:
        raise ValueError(f"unknown temperature band {band!r}") from None

    def _match(post: PostRecord) -> bool:
        f = post.temp_fahrenheit
        if f is None:
            return False
        return (low is None or f >= low) and (high is None or f < high)

    return _match


def matches_weather(kind: str) -> Predicate:
    if kind not in WEATHER_KINDS:
        raise ValueError(f"unknown weather {kind!r}")

    def _match(post: PostRecord) -> bool:
        symbol = post.weather_symbol
        if symbol is None:
            return False
        if kind == "sunny":
            return symbol in ("sun.max", "cloud.sun")
        return symbol.startswith("cloud")

    return _match


def top_by_likes(posts: Iterable[PostRecord], limit: int) -> list[PostRecord]:
    ordered = sorted(
        posts, key=lambda p: (-p.like_count, -p.created_at.timestamp(), p.id)
    )
    return ordered[:limit]
