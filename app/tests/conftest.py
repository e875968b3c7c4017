"""
Shared fixtures: a file-backed SQLite database per test (so several sessions
can hit it concurrently), fake redis, users and friendships.
"""
from datetime import datetime

import fakeredis.aioredis
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.database import Base

# every model must be imported before the first query so relationships resolve
from app.users.models import User
from app.friends.models import Friendship, FriendshipStatus
from app.location.models import Position  # noqa: F401
from app.sessions.models import TimeSession  # noqa: F401

from app.location.dao import PositionDAO
from app.location.rate_limit import FixRateLimiter
from app.pairs import normalize_pair
from app.redis_dao.custom_redis import CustomRedis


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'friendtime.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def fake_session(session_maker):
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def fake_redis():
    """CustomRedis whose primitive commands go to fakeredis."""
    fake = fakeredis.aioredis.FakeRedis(decode_responses=True)

    class FakeCustomRedis(CustomRedis):
        def __init__(self):
            self.redis = fake

        async def get(self, key):
            return await fake.get(key)

        async def setex(self, key, time, value):
            return await fake.setex(key, time, value)

        async def delete(self, *keys):
            return await fake.delete(*keys)

        async def ttl(self, key):
            return await fake.ttl(key)

    return FakeCustomRedis()


@pytest.fixture
def limiter(fake_redis):
    return FixRateLimiter(fake_redis, min_interval_seconds=120, min_distance_meters=5, ttl_seconds=3600)


@pytest_asyncio.fixture
async def users(fake_session):
    """alice, bob, carol, dave"""
    created = [User(username=name) for name in ("alice", "bob", "carol", "dave")]
    fake_session.add_all(created)
    await fake_session.commit()
    for user in created:
        await fake_session.refresh(user)
    return created


@pytest.fixture
def befriend(fake_session):
    async def _befriend(requester: User, recipient: User, status: FriendshipStatus = FriendshipStatus.ACCEPTED):
        low, high = normalize_pair(requester.id, recipient.id)
        friendship = Friendship(
            requester_id=requester.id, recipient_id=recipient.id, user_low=low, user_high=high, status=status
        )
        fake_session.add(friendship)
        await fake_session.commit()
        await fake_session.refresh(friendship)
        return friendship

    return _befriend


@pytest.fixture
def place(fake_session):
    """Writes a user's position directly, bypassing ingest."""
    async def _place(user: User, point: tuple[float, float], recorded_at: datetime, accuracy: float = 5.0):
        await PositionDAO.upsert(
            fake_session, user_id=user.id, latitude=point[0], longitude=point[1],
            accuracy=accuracy, recorded_at=recorded_at,
        )

    return _place
