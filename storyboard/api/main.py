"""
FastAPI Application - Storyboard Generator.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storyboard import __version__
from storyboard.config import config
from storyboard.models import InvalidTransitionError
from storyboard.providers.gemini import close_gateway
from storyboard.services.exceptions import StoryboardError
from .routes import health_router, storyboard_router
from .exceptions import (
    APIError,
    api_error_handler,
    generic_exception_handler,
    storyboard_error_handler,
    transition_error_handler,
)

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler."""
    logger.info("=" * 60)
    logger.info("Starting Storyboard API...")
    logger.info("=" * 60)

    config.log_status()

    logger.info("Server ready! Storyboard generation available at /api/storyboard")

    yield

    logger.info("Shutting down Storyboard API...")
    await close_gateway()


def create_app(debug: bool = False) -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Storyboard API",
        description="Script to consistent-character storyboard images",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StoryboardError, storyboard_error_handler)
    app.add_exception_handler(InvalidTransitionError, transition_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(storyboard_router)

    return app


app = create_app(debug=config.debug)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storyboard.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
