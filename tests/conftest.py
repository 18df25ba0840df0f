"""Pytest configuration and fixtures."""

import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import db  # noqa: F401  registers every model on Base.metadata
from db.database import Base
from db.users import User
from services.patch_store import PatchStore


@pytest_asyncio.fixture
async def session_maker() -> AsyncGenerator:
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_maker(tmp_path) -> AsyncGenerator:
    """SQLite file database; every session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'patches.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def store(db) -> PatchStore:
    """PatchStore with the built-in types seeded (2-day x10, weekly x5)."""
    s = PatchStore(db)
    await s.seed_defaults()
    return s


@pytest.fixture
def test_user() -> User:
    return User(
        id=uuid.uuid4(),
        email="tester@example.com",
        hashed_password="not-used",
        is_active=True,
        is_superuser=False,
        is_verified=True,
    )
