"""
Database engine and sessions for the study store.

``DATABASE_URL_RESOLVED`` selects the backend: PostgreSQL through asyncpg by
default, or SQLite through aiosqlite for a single-user install. Tables are
created by ``init_db()`` at startup.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from tally.config import settings, yaml_config


def _engine_options(url: str) -> dict[str, Any]:
    """Engine keyword arguments; pool sizing from YAML applies to server databases only."""
    options: dict[str, Any] = {"echo": settings.DEBUG}
    if url.startswith("sqlite"):
        return options

    pool = yaml_config.get("database", {})
    options.update(
        pool_size=pool.get("pool_size", 5),
        max_overflow=pool.get("max_overflow", 10),
        pool_timeout=pool.get("pool_timeout", 30),
    )
    return options


engine = create_async_engine(
    settings.DATABASE_URL_RESOLVED,
    **_engine_options(settings.DATABASE_URL_RESOLVED),
)

# Snapshots are converted to pydantic models inside each transaction, so
# rows need not be reloaded after commit.
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base of the study tables."""


# Registers the study tables on Base.metadata; must follow Base.
from tally.db import models_study  # noqa: F401, E402


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create any study tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
