"""
Test fixtures and configuration for pytest.
"""

import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import app.models  # noqa: F401  registers every table on SQLModel.metadata
from app.cache.layer import CacheLayer
from app.core.config import Settings
from app.models import BoardCreate, UserCreate
from app.services.board_service import BoardService
from app.services.comment_service import CommentService
from app.services.history_service import HistoryService
from app.services.task_service import TaskService
from app.services.user_service import UserService


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (decoded responses)."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.get_calls = 0

    async def ping(self):
        return True

    async def get(self, key):
        self.get_calls += 1
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def aclose(self):
        pass


class FailingRedis(FakeRedis):
    """Connects fine, then fails every data operation."""

    async def get(self, key):
        raise RedisConnectionError("connection reset")

    async def set(self, key, value, ex=None):
        raise RedisConnectionError("connection reset")

    async def delete(self, *keys):
        raise RedisConnectionError("connection reset")


class UnreachableRedis(FakeRedis):
    async def ping(self):
        raise RedisConnectionError("connection refused")


class HangingRedis(FakeRedis):
    """Never answers data operations in time."""

    async def get(self, key):
        await asyncio.sleep(10)

    async def set(self, key, value, ex=None):
        await asyncio.sleep(10)

    async def delete(self, *keys):
        await asyncio.sleep(10)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        cache_namespace="test:",
        cache_ttl_seconds=60,
        cache_op_timeout_seconds=0.1,
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def cache(settings, fake_redis) -> CacheLayer:
    layer = CacheLayer(settings, redis=fake_redis)
    await layer.init_cache()
    return layer


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def task_service(db, cache) -> TaskService:
    return TaskService(db, cache)


@pytest.fixture
def board_service(db, cache) -> BoardService:
    return BoardService(db, cache)


@pytest.fixture
def comment_service(db, cache) -> CommentService:
    return CommentService(db, cache)


@pytest.fixture
def user_service(db) -> UserService:
    return UserService(db)


@pytest.fixture
def history_service(db) -> HistoryService:
    return HistoryService(db)


@pytest_asyncio.fixture
async def owner(user_service):
    return await user_service.create_user(
        UserCreate(name="Board Owner", email="owner@example.com")
    )


@pytest_asyncio.fixture
async def actor(user_service):
    return await user_service.create_user(
        UserCreate(name="Editor", email="editor@example.com")
    )


@pytest_asyncio.fixture
async def board(board_service, owner):
    return await board_service.create_board(
        BoardCreate(name="Sprint 1", owner_id=owner.id)
    )
