"""
Integration Test Fixtures

Runs the repository and the HTTP API against a fresh in-memory SQLite
database (aiosqlite) per test. The app's get_db dependency is overridden so
tests never touch the configured database.

Note: tally.main imports are kept inside fixtures because they require
environment variables that are set up by the parent conftest.py.
"""

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture(scope="function")
async def session_maker() -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory bound to a fresh in-memory database with all tables.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    from tally.db.base import Base

    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        echo=False,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture
async def async_test_client(session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Create an async HTTP client configured to use the test database.

    Each request gets its own session from the test session factory, as it
    would from the real get_db dependency.
    """
    from tally.db.base import get_db
    from tally.main import app

    async def get_test_db():
        """Yield a test database session instead of the configured one."""
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = get_test_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
