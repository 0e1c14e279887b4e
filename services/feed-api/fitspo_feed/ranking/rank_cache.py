"""
Daily rank cache: post_id → position (1-based) in today's top-N hot posts.

Feed cards call rank() for every post they render to decide whether to show
a "#3 today" badge, so lookups are a plain dict read. The map is rebuilt in
full at most once per calendar day (owner time zone), lazily, on the first
refresh_if_needed() of a new day.

Rebuilds are single-flight: the first caller of the day starts one task and
every concurrent caller awaits that same task. The map is replaced with a
single assignment once the rebuild has succeeded, so readers see either the
old map or the new one. A failed rebuild leaves the old map and date in
place (the next call retries) and the error reaches every waiting caller.

An optional snapshot store (Redis) lets several API workers share one
rebuild per day: a worker first looks for today's snapshot and only scans
the store if there is none.
"""
import asyncio
import logging
from datetime import date, datetime, tzinfo
from typing import Optional, Protocol

from opentelemetry import trace

from fitspo_feed.config import settings
from fitspo_feed.errors import StoreFetchFailed
from fitspo_feed.ranking.clock import local_day, resolve_timezone
from fitspo_feed.ranking.hot_feed import HotFeedPaginator
from fitspo_feed.telemetry import RANK_CACHE_ENTRIES, RANK_CACHE_REFRESH_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RankSnapshots(Protocol):
    async def load(self, day: date) -> Optional[dict[str, int]]: ...

    async def save(self, day: date, ranks: dict[str, int]) -> None: ...


class DailyRankCache:
    def __init__(
        self,
        paginator: HotFeedPaginator,
        tz: Optional[tzinfo] = None,
        size: Optional[int] = None,
        page_size: Optional[int] = None,
        snapshots: Optional[RankSnapshots] = None,
    ) -> None:
        self.paginator = paginator
        self.tz = tz or resolve_timezone(settings.feed_timezone)
        self.size = size or settings.rank_cache_size
        self.page_size = page_size or settings.rank_cache_page_size
        self.snapshots = snapshots

        self._ranks: dict[str, int] = {}
        self._last_refresh_date: Optional[date] = None
        self._inflight: Optional[asyncio.Task] = None
        self._inflight_day: Optional[date] = None

    # ── Reads ─────────────────────────────────────────────────────────────

    def rank(self, post_id: str) -> Optional[int]:
        return self._ranks.get(post_id)

    @property
    def ranks(self) -> dict[str, int]:
        return dict(self._ranks)

    @property
    def last_refresh_date(self) -> Optional[date]:
        return self._last_refresh_date

    def top(self) -> list[str]:
        ranks = self._ranks
        return sorted(ranks, key=ranks.__getitem__)

    def is_fresh(self, as_of: datetime) -> bool:
        return self._last_refresh_date == local_day(as_of, self.tz)

    # ── Refresh ───────────────────────────────────────────────────────────

    async def refresh_if_needed(self, as_of: datetime) -> None:
        """Make sure the map describes as_of's calendar day.

        A day earlier than the one already cached is a no-op. Raises StoreFetchFailed if a rebuild was needed and failed; the
        previous map stays readable.
        """
        today = local_day(as_of, self.tz)
        if self._last_refresh_date is not None and today <= self._last_refresh_date:
            # A clock running behind never rolls the map back
            return

        task = self._inflight
        if task is None or task.done() or self._inflight_day != today:
            task = asyncio.create_task(self._rebuild(as_of, today))
            task.add_done_callback(self._rebuild_done)
            self._inflight, self._inflight_day = task, today

        # shield: a caller giving up must not cancel the shared rebuild
        await asyncio.shield(task)

    def invalidate(self) -> None:
        """Forget the refresh date so the next refresh_if_needed rebuilds."""
        self._last_refresh_date = None

    def _rebuild_done(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight, self._inflight_day = None, None
        if not task.cancelled():
            # Mark the exception retrieved; awaiting callers still get it
            task.exception()

    async def _rebuild(self, as_of: datetime, day: date) -> None:
        with tracer.start_as_current_span("rank_cache_refresh") as span:
            span.set_attribute("rank_cache.day", day.isoformat())

            outcome = "snapshot"
            ranks = await self.snapshots.load(day) if self.snapshots else None
            if ranks is None:
                outcome = "rebuilt"
                try:
                    ranks = await self._scan(as_of)
                except StoreFetchFailed as exc:
                    RANK_CACHE_REFRESH_TOTAL.labels(outcome="failed").inc()
                    logger.warning(
                        "Rank cache refresh for %s failed, keeping %d ranks from %s: %s",
                        day, len(self._ranks), self._last_refresh_date, exc,
                    )
                    raise

            if self._last_refresh_date is not None and self._last_refresh_date > day:
                # A rebuild for a later day already landed
                return

            self._ranks = ranks
            self._last_refresh_date = day

            RANK_CACHE_ENTRIES.set(len(ranks))
            RANK_CACHE_REFRESH_TOTAL.labels(outcome=outcome).inc()
            span.set_attribute("rank_cache.entries", len(ranks))
            span.set_attribute("rank_cache.outcome", outcome)
            logger.info("Rank cache for %s ready: %d posts (%s)", day, len(ranks), outcome)

            if outcome == "rebuilt" and self.snapshots:
                await self.snapshots.save(day, ranks)

    async def _scan(self, as_of: datetime) -> dict[str, int]:
        ranks: dict[str, int] = {}
        cursor: Optional[str] = None
        composite = False

        while len(ranks) < self.size:
            page = await self.paginator.fetch_hot_page(
                cursor,
                self.page_size,
                as_of,
                supports_composite_order_resume=composite,
            )
            for post in page.posts:
                if len(ranks) >= self.size:
                    break
                # Author dedup is per page: one author may hold several ranks
                ranks.setdefault(post.id, len(ranks) + 1)
            cursor, composite = page.cursor, page.composite_resume
            if cursor is None:
                break
        return ranks
