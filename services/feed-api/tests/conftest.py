import os

# Settings are read at import time; keep tests off the network
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("REDIS_RANK_SNAPSHOT_ENABLED", "false")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")
os.environ.setdefault("FEED_TIMEZONE", "UTC")

from datetime import datetime, timezone

import pytest

from stubs import InMemoryPostStore


AS_OF = datetime(2024, 5, 17, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def as_of() -> datetime:
    return AS_OF


@pytest.fixture
def store() -> InMemoryPostStore:
    return InMemoryPostStore()
