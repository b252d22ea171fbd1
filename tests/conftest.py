from collections.abc import AsyncGenerator

import pytest
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from habitkit.database import create_engine, create_session_factory
from habitkit.models import Base
from habitkit.schemas.habit import HabitResponse
from habitkit.tracker import HabitTracker
from tests.helpers import TODAY

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def db_engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def tracker(session_factory) -> AsyncGenerator[HabitTracker, None]:
    tracker = HabitTracker(session_factory, today_provider=lambda: TODAY)
    yield tracker
    await tracker.aclose()


@pytest.fixture
async def daily_habit(tracker: HabitTracker) -> HabitResponse:
    return await tracker.create_habit({"title": "Read 20 pages"})


@pytest.fixture
async def weekly_habit(tracker: HabitTracker) -> HabitResponse:
    # Monday and Thursday
    return await tracker.create_habit(
        {"title": "Gym", "frequency_type": "weekly", "frequency_days": [3, 0]}
    )
