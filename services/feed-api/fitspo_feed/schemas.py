"""
Pydantic schemas shared by the feed core and the API layer.

PostRecord is what a store adapter hands to the ranking core. Scores and
ranks are derived from it on every call and never written back onto it.
Kept separate from the ORM models to avoid coupling ranking to storage.
"""
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# ──────────────────────────── Posts ───────────────────────────────────────

# OpenWeather icon prefix → symbol name shown on post cards
_WEATHER_SYMBOLS = {
    "01": ("sun.max", "moon"),
    "02": ("cloud.sun", "cloud.moon"),
    "03": ("cloud", "cloud"),
    "04": ("cloud", "cloud"),
    "09": ("cloud.drizzle", "cloud.drizzle"),
    "10": ("cloud.rain", "cloud.rain"),
    "11": ("cloud.bolt", "cloud.bolt"),
    "13": ("snow", "snow"),
    "50": ("cloud.fog", "cloud.fog"),
}


class PostRecord(BaseModel):
    """One post as fetched from the store."""
    id: str
    author_id: str
    created_at: datetime
    like_count: int = Field(0, ge=0)
    comment_count: int = Field(0, ge=0)
    share_count: int = Field(0, ge=0)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    # Display payload — carried through, never interpreted by ranking
    image_url: Optional[str] = None
    caption: Optional[str] = None
    city: Optional[str] = None
    temp: Optional[float] = None          # Celsius
    weather_icon: Optional[str] = None    # OpenWeather code, e.g. "10d"
    hashtags: list[str] = []

    class Config:
        frozen = True

    @field_validator("like_count", "comment_count", "share_count", mode="before")
    @classmethod
    def _missing_counter_is_zero(cls, value):
        return 0 if value is None else value

    @field_validator("hashtags", mode="before")
    @classmethod
    def _missing_tags_are_empty(cls, value):
        return [] if value is None else value

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _coordinates_come_in_pairs(self) -> "PostRecord":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must both be set or both be absent")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def temp_fahrenheit(self) -> Optional[float]:
        if self.temp is None:
            return None
        return self.temp * 9 / 5 + 32

    @property
    def weather_symbol(self) -> Optional[str]:
        if not self.weather_icon:
            return None
        symbols = _WEATHER_SYMBOLS.get(self.weather_icon[:2])
        if symbols is None:
            return None
        day, night = symbols
        return day if self.weather_icon.endswith("d") else night


class ScoredPost(NamedTuple):
    post: PostRecord
    score: int


class StorePage(NamedTuple):
    """One page as returned by a store adapter."""
    posts: list[PostRecord]
    next_cursor: Optional[str]
    # True when next_cursor carries both the score and time sort keys
    composite_cursor: bool = False


class FeedPage(BaseModel):
    """A page produced by one of the paginators.

    cursor is None once the stream is exhausted. composite_resume is the flag
    the caller passes back as supports_composite_order_resume together with
    cursor. approximate marks a hot page built from the recency fallback.
    """
    posts: list[PostRecord]
    cursor: Optional[str] = None
    composite_resume: bool = False
    approximate: bool = False
    # post_id → hotness score, filled by the hot paginator only
    scores: dict[str, int] = {}


# ──────────────────────────── API responses ───────────────────────────────

class FeedPostOut(BaseModel):
    post_id: str
    user_id: str
    image_url: Optional[str]
    caption: Optional[str]
    city: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    hashtags: list[str]
    temp: Optional[float]               # Celsius
    temp_fahrenheit: Optional[float]
    weather_icon: Optional[str]
    weather_symbol: Optional[str]
    like_count: int
    comment_count: int
    share_count: int
    created_at: datetime
    # Hot feed only
    score: Optional[int] = None
    position: Optional[int] = None


class FeedPageResponse(BaseModel):
    posts: list[FeedPostOut]
    cursor: Optional[str]
    composite_resume: bool
    approximate: bool


class RankResponse(BaseModel):
    post_id: str
    rank: Optional[int]
    day: Optional[str]
    stale: bool


class RankEntry(BaseModel):
    post_id: str
    rank: int


class RankListResponse(BaseModel):
    day: Optional[str]
    stale: bool
    ranks: list[RankEntry]
