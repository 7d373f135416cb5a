"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from tally.config import settings

    # Access settings
    db_url = settings.DATABASE_URL_RESOLVED
    tz = settings.STUDY_TIMEZONE
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Tally"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "tally"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "tally"

    # Full SQLAlchemy URL; overrides the POSTGRES_* parts when set
    # (e.g. "sqlite+aiosqlite:///./tally.db" for a single-user install).
    DATABASE_URL: str = ""

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL_RESOLVED(self) -> str:
        """Connection URL actually used by the engine."""
        return self.DATABASE_URL or self.POSTGRES_URL

    # Calendar
    # Day keys (start of day, Monday-start weeks) are computed in this zone.
    STUDY_TIMEZONE: str = "UTC"

    # Quotas
    DEFAULT_WEEKLY_TARGET_DAYS: int = 4
    # Used by per-material auto quotas when no goal supplies a weekly target
    FALLBACK_WEEKLY_TARGET_DAYS: int = 7

    # Heatmap
    HEATMAP_DEFAULT_MONTHS: int = 4
    HEATMAP_MAX_MONTHS: int = 24

    # Activity level thresholds (ratio of a day's amount to the busiest day)
    ACTIVITY_LEVEL_HIGH: float = 0.75
    ACTIVITY_LEVEL_MEDIUM_HIGH: float = 0.5
    ACTIVITY_LEVEL_MEDIUM: float = 0.25

    # Streaks
    STREAK_MILESTONES: list[int] = [7, 14, 30, 60, 100, 365]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
