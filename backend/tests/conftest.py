"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests.
"""

import os
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from dotenv import load_dotenv

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any fixtures run
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Settings are read when tally.config is first imported (at collection),
# so the test database and calendar zone are pinned here, not in a fixture.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["STUDY_TIMEZONE"] = "UTC"


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Set up test environment variables before any tests run.

    Overrides values from .env files so tests run with predictable
    configuration.
    """
    original_env = os.environ.copy()

    test_env = {
        "DATABASE_URL": "sqlite+aiosqlite://",
        "STUDY_TIMEZONE": "UTC",
        "DEBUG": "true",
    }
    os.environ.update(test_env)

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# Domain Fixtures
# ============================================================================


@pytest.fixture
def today() -> date:
    """A fixed Wednesday so week and month arithmetic is reproducible."""
    return date(2024, 5, 15)


@pytest.fixture
def goal():
    """A goal with an exam 10 days after ``today`` and a 4-day weekly target."""
    from tally.models.study import Goal

    return Goal(
        id="goal-1",
        name="Applied Information Technology Engineer",
        exam_date=date(2024, 5, 25),
        weekly_target_days=4,
        is_selected=True,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def material(goal):
    """A 100-page textbook with no progress and a manual quota of 5."""
    from tally.models.study import ManualQuota, Material

    return Material(
        id="mat-1",
        goal_id=goal.id,
        name="Textbook",
        total_amount=100,
        quota=ManualQuota(daily_quota=5),
        created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_db_session() -> MagicMock:
    """
    Create a mock database session for unit testing.
    """
    mock = MagicMock()
    mock.execute = AsyncMock()
    mock.commit = AsyncMock()
    mock.rollback = AsyncMock()
    mock.close = AsyncMock()
    mock.get = AsyncMock(return_value=None)
    mock.add = MagicMock()
    return mock
