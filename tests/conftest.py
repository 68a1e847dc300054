"""Shared fixtures for feed_aggregator tests."""

from datetime import datetime, timedelta, timezone

import aiosqlite
import pytest

from feed_aggregator.models.schemas import format_timestamp
from feed_aggregator.storage.database import FeedStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClock:
    """Returns strictly increasing timestamps, one second apart."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> str:
        self.current += timedelta(seconds=1)
        return format_timestamp(self.current)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def store(clock):
    """FeedStore on an in-memory database with a small page size."""
    db = await aiosqlite.connect(":memory:")
    feed_store = FeedStore(db, page_size=3, clock=clock)
    await feed_store.init()

    yield feed_store

    await db.close()
