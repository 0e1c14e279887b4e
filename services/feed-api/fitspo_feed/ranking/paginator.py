"""
Generic cursor paginator for the chronological home feed and the filtered
explore feeds.

Pages come straight from the store's recency ordering: created_at desc,
id asc, no scoring, no dedup. Filters are plain predicates applied after the
page is fetched, so a filtered page can come back short (even empty) while
the cursor still points at more posts. Callers that need N matches use
collect(), which keeps paging until it has them or the stream ends.
"""
import logging
from typing import Callable, Optional

from opentelemetry import trace

from fitspo_feed.config import settings
from fitspo_feed.errors import InvalidArgument
from fitspo_feed.schemas import FeedPage, PostRecord
from fitspo_feed.stores.base import ORDER_RECENCY, PostStore, fetch_with_timeout
from fitspo_feed.telemetry import FEED_PAGE_LATENCY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

Predicate = Callable[[PostRecord], bool]

ORDER_KEYS = (ORDER_RECENCY,)


def check_page_request(
    store: PostStore,
    cursor: Optional[str],
    page_size: int,
    max_page_size: int,
    composite: bool = False,
) -> None:
    """Fail fast on a bad page request, before any store call is made.

    composite: the caller claims cursor resumes the score ordering.
    """
    if isinstance(page_size, bool) or not isinstance(page_size, int):
        raise InvalidArgument(f"page_size must be an integer, got {page_size!r}")
    if page_size <= 0:
        raise InvalidArgument(f"page_size must be positive, got {page_size}")
    if page_size > max_page_size:
        raise InvalidArgument(f"page_size must be at most {max_page_size}, got {page_size}")
    if cursor is None:
        return
    if not isinstance(cursor, str) or not cursor:
        raise InvalidArgument("cursor must be a non-empty string")
    try:
        store.check_cursor(cursor, composite=composite)
    except ValueError as exc:
        raise InvalidArgument(f"malformed cursor: {exc}") from exc


def recency_key(post: PostRecord) -> tuple:
    return (-post.created_at.timestamp(), post.id)


class FeedPaginator:
    def __init__(
        self,
        store: PostStore,
        fetch_timeout: Optional[float] = None,
        max_page_size: Optional[int] = None,
    ) -> None:
        self.store = store
        self.fetch_timeout = (
            settings.store_fetch_timeout if fetch_timeout is None else fetch_timeout
        )
        self.max_page_size = max_page_size or settings.max_page_size

    async def fetch_page(
        self,
        cursor: Optional[str],
        page_size: int,
        order_key: str = ORDER_RECENCY,
        predicate: Optional[Predicate] = None,
    ) -> FeedPage:
        if order_key not in ORDER_KEYS:
            raise InvalidArgument(f"unsupported order_key {order_key!r}")
        check_page_request(self.store, cursor, page_size, self.max_page_size)

        with tracer.start_as_current_span("fetch_page") as span, \
                FEED_PAGE_LATENCY.labels(feed="recent").time():
            span.set_attribute("page.size", page_size)
            span.set_attribute("page.resumed", cursor is not None)

            page = await fetch_with_timeout(
                self.store.fetch_posts_ordered_by_recency(cursor, page_size),
                self.fetch_timeout,
                ORDER_RECENCY,
            )
            posts = sorted(page.posts, key=recency_key)
            if predicate is not None:
                posts = [p for p in posts if predicate(p)]

            span.set_attribute("page.returned", len(posts))
            logger.debug(
                "Recent page: fetched=%d returned=%d more=%s",
                len(page.posts), len(posts), page.next_cursor is not None,
            )
            return FeedPage(
                posts=posts,
                cursor=page.next_cursor,
                composite_resume=page.composite_cursor,
            )

    async def collect(
        self,
        predicate: Predicate,
        limit: int,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> tuple[list[PostRecord], Optional[str]]:
        """Page forward until `limit` posts match, the stream ends or
        `max_pages` pages were read.

        Returns every match from the pages read (whole pages, so possibly
        more than `limit`) and the cursor to continue from, None when the
        stream is exhausted.
        """
        if limit <= 0:
            raise InvalidArgument(f"limit must be positive, got {limit}")
        page_size = page_size or settings.explore_scan_page_size
        max_pages = max_pages or settings.explore_max_pages

        matched: list[PostRecord] = []
        for _ in range(max_pages):
            page = await self.fetch_page(cursor, page_size, predicate=predicate)
            matched.extend(page.posts)
            cursor = page.cursor
            if len(matched) >= limit or cursor is None:
                break
        return matched, cursor
