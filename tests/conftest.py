"""Pytest configuration and shared fixtures."""

from typing import List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from partcatalog.models import Base
from partcatalog.scrapers.scraper_service import ScraperService


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with all catalog tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory):
    """A session for assertions, separate from the ones the code under test opens."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def sleeps() -> List[float]:
    """Records the delays passed to fake_sleep."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture(autouse=True)
def reset_running_retailers():
    ScraperService._running_retailers.clear()
    yield
    ScraperService._running_retailers.clear()
