"""
Domain errors raised by the feed core.

The routers translate these into HTTP responses; nothing below the router
layer knows about status codes.
"""


class FeedError(Exception):
    """Base class for feed errors."""


class InvalidArgument(FeedError, ValueError):
    """Caller passed a bad page size, order key or cursor."""


class StoreFetchFailed(FeedError):
    """A post store page fetch failed (network, permission, timeout)."""

    def __init__(self, cause: BaseException, order: str | None = None) -> None:
        self.cause = cause
        self.order = order
        detail = f"{type(cause).__name__}: {cause}" if str(cause) else type(cause).__name__
        if order:
            super().__init__(f"{order}-ordered post fetch failed ({detail})")
        else:
            super().__init__(f"post fetch failed ({detail})")
