"""
Tally API application.

Run with:
    uvicorn tally.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tally.config import settings
from tally.db.base import init_db
from tally.middleware.error_handling import setup_error_handling
from tally.routers import study_router

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure root logging from LOG_LEVEL (DEBUG forces debug level)."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    if settings.DEBUG:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"{settings.APP_NAME} started")
    yield


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(title=f"{settings.APP_NAME} API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)
    app.include_router(study_router.router)

    @app.get("/")
    async def root():
        return {"message": f"{settings.APP_NAME} API"}

    return app


app = create_app()
