"""Shared fixtures: a file-backed SQLite database per test."""
from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from uptime.database import Base, build_engine
from uptime.models import CheckResult, Monitor
from uptime.services.checker import CheckOutcome, ProbeResult

# Fixed reference time used by the scheduling tests
NOW = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture
async def engine(tmp_path):
    """Create a test engine configured exactly like production SQLite.

    Yields:
        AsyncEngine over a fresh database file
    """
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


async def create_monitor(
    session_factory: async_sessionmaker,
    url: str = "https://example.com",
    label: Optional[str] = None,
    frequency: int = 5,
    owner_id: int = 1,
    next_due_at: Optional[datetime] = None,
    claimed: bool = False,
    updated_at: Optional[datetime] = None,
    claimed_at: Optional[datetime] = None,
) -> Monitor:
    """Insert a monitor with explicit scheduling state in its own session."""
    async with session_factory() as session:
        monitor = Monitor(
            owner_id=owner_id,
            url=url,
            label=label,
            frequency=frequency,
            next_due_at=next_due_at,
            claimed=claimed,
            claimed_at=claimed_at or ((updated_at or NOW) if claimed else None),
            created_at=updated_at or NOW,
            updated_at=updated_at or NOW,
        )
        session.add(monitor)
        await session.commit()
        return monitor


async def load_monitor(session_factory: async_sessionmaker, monitor_id: int) -> Optional[Monitor]:
    """Read a monitor's committed state through a fresh session."""
    async with session_factory() as session:
        result = await session.execute(select(Monitor).where(Monitor.id == monitor_id))
        return result.scalar_one_or_none()


async def load_results(session_factory: async_sessionmaker, monitor_id: int) -> list:
    async with session_factory() as session:
        result = await session.execute(
            select(CheckResult).where(CheckResult.monitor_id == monitor_id).order_by(CheckResult.id)
        )
        return list(result.scalars().all())


class FakeChecker:
    """Checker double returning a fixed outcome and remembering probed URLs."""

    def __init__(self, outcome: CheckOutcome, checked_at: datetime = NOW):
        self.outcome = outcome
        self.checked_at = checked_at
        self.urls = []

    async def probe(self, url, timeout=None):
        self.urls.append(url)
        return ProbeResult(outcome=self.outcome, checked_at=self.checked_at)
