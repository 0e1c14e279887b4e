"""
Hot feed — today's posts ranked by hotness.

For each call:

  1. Pick the store ordering.
       cursor is None, or the caller says the cursor carries the score key
         → score order (likes desc, created_at desc)
       otherwise
         → recency order for this page; the page is flagged `approximate`
     A recency cursor cannot resume the score ordering, so we accept a
     rougher ranking rather than lose our place in the stream.

  2. Fetch batches (each no larger than the free slots left on the page)
     until the page is full, the store runs dry or the batch budget is spent.
     Posts created before the start of today (owner time zone) are skipped.
     In recency order the first such post ends the scan.

  3. Keep one post per author: the best ranked one seen in this call.
     This is per page, not global — an author's runner-up may show up on a
     later page.

  4. Sort by score desc, created_at desc, id asc.

The returned cursor points after the last document fetched from the store,
before filtering and dedup, so the next call continues the same scan.
"""
import logging
from datetime import datetime, tzinfo
from typing import Optional

from opentelemetry import trace

from fitspo_feed.config import settings
from fitspo_feed.ranking.clock import resolve_timezone, start_of_day
from fitspo_feed.ranking.paginator import check_page_request
from fitspo_feed.ranking.scoring import Scorer, hotness_score, ranking_key
from fitspo_feed.schemas import FeedPage, ScoredPost, StorePage
from fitspo_feed.stores.base import ORDER_RECENCY, ORDER_SCORE, PostStore, fetch_with_timeout
from fitspo_feed.telemetry import (
    FEED_PAGE_LATENCY,
    HOT_DEDUP_DROPPED_TOTAL,
    HOT_FALLBACK_PAGES_TOTAL,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class HotFeedPaginator:
    def __init__(
        self,
        store: PostStore,
        scorer: Scorer = hotness_score,
        tz: Optional[tzinfo] = None,
        max_scan_batches: Optional[int] = None,
        fetch_timeout: Optional[float] = None,
        max_page_size: Optional[int] = None,
    ) -> None:
        self.store = store
        self.scorer = scorer
        self.tz = tz or resolve_timezone(settings.feed_timezone)
        self.max_scan_batches = max_scan_batches or settings.hot_max_scan_batches
        self.fetch_timeout = (
            settings.store_fetch_timeout if fetch_timeout is None else fetch_timeout
        )
        self.max_page_size = max_page_size or settings.max_page_size

    async def fetch_hot_page(
        self,
        cursor: Optional[str],
        page_size: int,
        as_of: datetime,
        supports_composite_order_resume: bool = False,
    ) -> FeedPage:
        check_page_request(
            self.store,
            cursor,
            page_size,
            self.max_page_size,
            composite=supports_composite_order_resume,
        )

        by_score = cursor is None or supports_composite_order_resume
        approximate = not by_score
        day_start = start_of_day(as_of, self.tz)

        with tracer.start_as_current_span("fetch_hot_page") as span, \
                FEED_PAGE_LATENCY.labels(feed="hot").time():
            span.set_attribute("page.size", page_size)

            best: dict[str, ScoredPost] = {}
            dropped = 0
            fetched = 0
            batches = 0
            next_cursor = cursor
            composite = False

            while len(best) < page_size and batches < self.max_scan_batches:
                batch = await self._fetch(next_cursor, page_size - len(best), by_score)
                batches += 1
                fetched += len(batch.posts)
                next_cursor, composite = batch.next_cursor, batch.composite_cursor

                for post in batch.posts:
                    if post.created_at < day_start:
                        if not by_score:
                            # Recency stream: everything from here on is older
                            next_cursor, composite = None, False
                            break
                        continue

                    scored = ScoredPost(post, self.scorer(post))
                    current = best.get(post.author_id)
                    if current is None:
                        best[post.author_id] = scored
                        continue
                    dropped += 1
                    if ranking_key(scored) < ranking_key(current):
                        best[post.author_id] = scored

                if next_cursor is None:
                    break
                if by_score and not composite:
                    # The store handed back a cursor without the score key
                    by_score = False
                    approximate = True

            ranked = sorted(best.values(), key=ranking_key)

            if dropped:
                HOT_DEDUP_DROPPED_TOTAL.inc(dropped)
            if approximate:
                HOT_FALLBACK_PAGES_TOTAL.inc()
            span.set_attribute("page.fallback", approximate)
            span.set_attribute("page.batches", batches)
            span.set_attribute("page.fetched", fetched)
            span.set_attribute("page.returned", len(ranked))
            logger.debug(
                "Hot page: batches=%d fetched=%d returned=%d dropped=%d fallback=%s more=%s",
                batches, fetched, len(ranked), dropped, approximate, next_cursor is not None,
            )

            return FeedPage(
                posts=[s.post for s in ranked],
                cursor=next_cursor,
                composite_resume=composite,
                approximate=approximate,
                scores={s.post.id: s.score for s in ranked},
            )

    async def _fetch(self, cursor: Optional[str], limit: int, by_score: bool) -> StorePage:
        if by_score:
            return await fetch_with_timeout(
                self.store.fetch_posts_ordered_by_score(cursor, limit),
                self.fetch_timeout,
                ORDER_SCORE,
            )
        return await fetch_with_timeout(
            self.store.fetch_posts_ordered_by_recency(cursor, limit),
            self.fetch_timeout,
            ORDER_RECENCY,
        )
