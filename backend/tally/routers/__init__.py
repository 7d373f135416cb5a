"""API Routers package."""

from tally.routers import study as study_router

__all__ = ["study_router"]
