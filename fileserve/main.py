"""FastAPI application entry point."""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fileserve.config import get_settings
from fileserve.routers import downloads as downloads_router
from fileserve.services.temp_store import get_temp_store
from fileserve.utils.logging_config import configure_logging, get_logger

VERSION = "0.1.0"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    configure_logging(level=settings.log_level)
    logger.info("FileServe v%s", VERSION)
    logger.info("Storage root: %s", settings.storage_root)

    temp_store = get_temp_store()
    logger.info("Temp store:   %s", temp_store.directory)

    # Tickets never fetched (or interrupted deliveries) leave artifacts behind.
    temp_store.purge_older_than(settings.ticket_max_age_minutes * 60)

    yield

    # Shutdown
    logger.info("Shutting down...")


def create_app() -> FastAPI:
    """Create the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="FileServe",
        version=VERSION,
        lifespan=lifespan,
    )

    origins = settings.get_cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["Accept-Ranges", "Content-Disposition", "Content-Length", "Content-Range"],
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Return a minimal health status payload."""
        return {"status": "ok"}

    app.include_router(downloads_router.router, prefix="/api", tags=["downloads"])

    return app


def run() -> None:
    """Serve the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "fileserve.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
