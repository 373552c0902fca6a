"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Register every mapped table on Base.metadata before create_all.
import booking_engine.accounts.models  # noqa: F401
import booking_engine.agents.models  # noqa: F401
import booking_engine.availability.models  # noqa: F401
import booking_engine.leads.models  # noqa: F401
import booking_engine.outreach.models  # noqa: F401
from booking_engine.config import Settings
from booking_engine.conversation.mock_adapter import MockConversationEngine
from booking_engine.messaging.mock_adapter import MockMessagingGateway, MockTextChannel
from booking_engine.shared.database import Base, DatabaseManager

from fakes import FrozenClock, InMemoryDatabase, InMemoryStoreFactory

# Monday 2025-11-03 10:00 in America/Sao_Paulo (UTC-3).
MONDAY_10AM_SP = datetime(2025, 11, 3, 13, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with the business-hours gate always open."""
    return Settings(
        app_env="dev",
        debug=False,
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        business_timezone="America/Sao_Paulo",
        business_hours_start=0,
        business_hours_end=24,
        business_days="0,1,2,3,4,5,6",
        retry_cooldown_hours=2,
        retry_failed_backoff_minutes=30,
        default_max_attempts=3,
        operation_timeout_seconds=5,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(MONDAY_10AM_SP)


@pytest.fixture
def memory_db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def stores(memory_db: InMemoryDatabase) -> InMemoryStoreFactory:
    return InMemoryStoreFactory(memory_db)


@pytest.fixture
def conversation_engine() -> MockConversationEngine:
    return MockConversationEngine()


@pytest.fixture
def gateway() -> MockMessagingGateway:
    return MockMessagingGateway()


@pytest.fixture
def text_channel() -> MockTextChannel:
    return MockTextChannel()


@pytest_asyncio.fixture
async def db_manager(test_settings: Settings) -> AsyncGenerator[DatabaseManager, None]:
    """Database manager over a fresh SQLite file with all tables created."""
    manager = DatabaseManager(test_settings.database_url)

    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield manager

    await manager.close()


@pytest.fixture
def db_engine(db_manager: DatabaseManager) -> AsyncEngine:
    return db_manager.engine


@pytest_asyncio.fixture
async def db_session(db_engine: Any) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
