"""
PostStore backed by the `posts` table (TiDB / any SQLAlchemy async engine).

Keyset pagination, never OFFSET:

  recency  ORDER BY created_at DESC, post_id ASC
           cursor {"ts": ..., "id": ...}
  score    ORDER BY likes DESC, created_at DESC, post_id ASC
           cursor {"likes": ..., "ts": ..., "id": ...}   (composite)

The database can only order by a stored column, so "score" order here is
likes-first; the hot paginator re-sorts each page by the full hotness score.
Cursors are URL-safe base64 JSON. Each query reads page_size + 1 rows to
tell whether another page exists.
"""
import base64
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fitspo_feed.models import Post
from fitspo_feed.schemas import PostRecord, StorePage

logger = logging.getLogger(__name__)


def encode_cursor(row: Post, composite: bool) -> str:
    payload: dict[str, Any] = {"ts": row.created_at.isoformat(), "id": row.post_id}
    if composite:
        payload["likes"] = row.likes
    raw = json.dumps(payload, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode()


def decode_cursor(cursor: str) -> dict[str, Any]:
    """Decode a cursor; raises ValueError if it is not one of ours."""
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()))
        ts = datetime.fromisoformat(payload["ts"])
        entity_id = str(payload["id"])
    except (ValueError, TypeError, KeyError) as exc:
        raise ValueError(f"undecodable cursor ({exc!r})") from exc

    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)  # column holds naive UTC
    decoded: dict[str, Any] = {"ts": ts, "id": entity_id}
    if "likes" in payload:
        likes = payload["likes"]
        if isinstance(likes, bool) or not isinstance(likes, int):
            raise ValueError("cursor likes key must be an integer")
        decoded["likes"] = likes
    return decoded


def _to_record(row: Post) -> PostRecord:
    return PostRecord(
        id=row.post_id,
        author_id=row.user_id,
        created_at=row.created_at,
        like_count=row.likes,
        comment_count=row.comments_count,
        share_count=row.shares_count,
        latitude=row.latitude,
        longitude=row.longitude,
        image_url=row.image_url,
        caption=row.caption,
        city=row.city,
        temp=row.temp,
        weather_icon=row.weather_icon,
        hashtags=row.hashtags,
    )


class SqlPostStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self.sessionmaker = sessionmaker

    def check_cursor(self, cursor: str, composite: bool = False) -> None:
        after = decode_cursor(cursor)
        if composite and "likes" not in after:
            raise ValueError("cursor cannot resume score order (no likes key)")

    async def fetch_posts_ordered_by_score(
        self, cursor: Optional[str], page_size: int
    ) -> StorePage:
        stmt = select(Post).order_by(
            Post.likes.desc(), Post.created_at.desc(), Post.post_id.asc()
        )
        if cursor is not None:
            after = decode_cursor(cursor)
            if "likes" not in after:
                raise ValueError("cursor cannot resume score order (no likes key)")
            stmt = stmt.where(
                or_(
                    Post.likes < after["likes"],
                    and_(Post.likes == after["likes"], self._after_in_time(after)),
                )
            )
        return await self._page(stmt, page_size, composite=True)

    async def fetch_posts_ordered_by_recency(
        self, cursor: Optional[str], page_size: int
    ) -> StorePage:
        stmt = select(Post).order_by(Post.created_at.desc(), Post.post_id.asc())
        if cursor is not None:
            stmt = stmt.where(self._after_in_time(decode_cursor(cursor)))
        return await self._page(stmt, page_size, composite=False)

    @staticmethod
    def _after_in_time(after: dict[str, Any]):
        return or_(
            Post.created_at < after["ts"],
            and_(Post.created_at == after["ts"], Post.post_id > after["id"]),
        )

    async def _page(self, stmt, page_size: int, composite: bool) -> StorePage:
        async with self.sessionmaker() as session:
            result = await session.execute(stmt.limit(page_size + 1))
            rows = list(result.scalars().all())

        has_more = len(rows) > page_size
        rows = rows[:page_size]

        posts: list[PostRecord] = []
        for row in rows:
            try:
                posts.append(_to_record(row))
            except ValidationError as exc:
                logger.warning("Skipping malformed post %s: %s", row.post_id, exc)

        next_cursor = encode_cursor(rows[-1], composite) if has_more else None
        return StorePage(posts, next_cursor, composite and next_cursor is not None)
