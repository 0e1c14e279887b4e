"""
Post store adapter contract.

The ranking core talks to the post table only through this interface:

  fetch_posts_ordered_by_score(cursor, page_size)    likes desc, created_at desc, id asc
  fetch_posts_ordered_by_recency(cursor, page_size)  created_at desc, id asc

Both return a StorePage whose next_cursor is None once the stream is
exhausted. Cursors are opaque strings; the only thing the core learns about
one is StorePage.composite_cursor, i.e. whether it can resume the score
ordering. check_cursor lets the core reject garbage, and cursors that cannot
resume the ordering the caller asked for, before any I/O.
"""
import asyncio
import logging
from typing import Awaitable, Optional, Protocol, TypeVar

from fitspo_feed.errors import StoreFetchFailed
from fitspo_feed.schemas import StorePage
from fitspo_feed.telemetry import STORE_FETCH_ERRORS_TOTAL

logger = logging.getLogger(__name__)

T = TypeVar("T")

ORDER_SCORE = "score"
ORDER_RECENCY = "recency"


class PostStore(Protocol):
    async def fetch_posts_ordered_by_score(
        self, cursor: Optional[str], page_size: int
    ) -> StorePage: ...

    async def fetch_posts_ordered_by_recency(
        self, cursor: Optional[str], page_size: int
    ) -> StorePage: ...

    def check_cursor(self, cursor: str, composite: bool = False) -> None:
        """Raise ValueError if cursor cannot be decoded, or if composite is
        set and cursor cannot resume the score ordering. Must not do I/O.
        """
        ...


async def fetch_with_timeout(
    fetch: Awaitable[T],
    timeout: Optional[float],
    order: str,
) -> T:
    """Await one store fetch, turning any failure into StoreFetchFailed.

    Cancellation is not a failure and propagates as-is.
    """
    try:
        return await asyncio.wait_for(fetch, timeout=timeout)
    except asyncio.CancelledError:
        raise
    except asyncio.TimeoutError as exc:
        STORE_FETCH_ERRORS_TOTAL.labels(order=order).inc()
        logger.warning("%s-ordered post fetch timed out after %ss", order, timeout)
        raise StoreFetchFailed(exc, order=order) from exc
    except Exception as exc:
        STORE_FETCH_ERRORS_TOTAL.labels(order=order).inc()
        logger.warning("%s-ordered post fetch failed: %s", order, exc)
        raise StoreFetchFailed(exc, order=order) from exc
