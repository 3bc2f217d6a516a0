"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from hybridapi.config import get_settings
from hybridapi.infrastructure.database.session import create_tables
from hybridapi.infrastructure.dependencies import get_hybrid_engine
from hybridapi.infrastructure.logging.log_config import setup_logging
from hybridapi.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: configure logging, create tables, release the engine on shutdown."""
    settings = get_settings()
    setup_logging(settings)

    engine = get_hybrid_engine()
    if engine.database is not None:
        await create_tables(engine.database)
        logger.info("Database tables ready (%s)", settings.database_url)

    yield

    # Shutdown
    await engine.aclose()
    get_hybrid_engine.cache_clear()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hybridapi.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
