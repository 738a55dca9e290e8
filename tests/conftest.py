"""Shared fixtures: a fresh in-memory SQLite ledger and a controllable clock."""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from db.connection import Database

# Wednesday, 09:00 in America/Chicago
WEDNESDAY_MORNING = datetime(2026, 3, 4, 15, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(WEDNESDAY_MORNING)


@pytest_asyncio.fixture
async def database():
    db = Database.from_url("sqlite+aiosqlite://")
    await db.create_all()
    yield db
    await db.dispose()
