"""
SQLAlchemy ORM models for TiDB.

Tables:
  posts — post metadata and interaction counters read by the feeds

The counters are maintained by the like / comment / share endpoints of the
main app; this service only reads them.
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from fitspo_feed.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Post(Base):
    __tablename__ = "posts"

    post_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    caption: Mapped[Optional[str]] = mapped_column(Text)
    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comments_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    shares_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    city: Mapped[Optional[str]] = mapped_column(String(120))
    temp: Mapped[Optional[float]] = mapped_column(Float)          # Celsius
    weather_icon: Mapped[Optional[str]] = mapped_column(String(8))
    hashtags: Mapped[Optional[list]] = mapped_column(JSON)
    # Stored as naive UTC
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        # Hot feed: likes desc, created_at desc
        Index("idx_posts_likes_created", "likes", "created_at"),
        # Home feed: created_at desc
        Index("idx_posts_created", "created_at"),
        Index("idx_posts_user", "user_id"),
    )
