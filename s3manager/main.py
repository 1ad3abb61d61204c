"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Route registration depends on settings (ALLOW_DELETE)

For local development:
    uvicorn s3manager.main:app --reload

For production:
    s3manager
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles

from .api.dependencies import build_sse_config, build_storage_client
from .api.errors import register_exception_handlers
from .api.routes import buckets, health, objects, views
from .config.settings import Settings, get_settings
from .web.templates import STATIC_DIR

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the storage client once per process. Invalid configuration
    (missing credentials, unknown signature type, bad SSE descriptor,
    unreadable CA certificate) raises ConfigurationError here, which stops
    the server before it accepts traffic.
    """
    # Startup
    settings: Settings = app.state.settings

    logger.info(
        "S3 Manager starting",
        extra={
            "version": settings.app_version,
            "endpoint": settings.endpoint,
            "mock_mode": settings.storage_mock_mode,
            "allow_delete": settings.allow_delete,
        }
    )

    app.state.sse = build_sse_config(settings)
    app.state.storage = build_storage_client(settings)

    yield

    # Shutdown
    logger.info("S3 Manager shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    This function is called once at startup (in production) or
    multiple times (in tests with different configurations).
    """
    settings = settings or get_settings()

    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        description="Browse, upload, download and share objects in S3-compatible storage.",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_exception_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """One log line per request."""
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    # Include routers
    app.include_router(views.router)

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        buckets.router,
        prefix="/api/buckets",
        tags=["Buckets"],
    )

    app.include_router(
        objects.router,
        prefix="/api/buckets",
        tags=["Objects"],
    )

    if settings.allow_delete:
        app.include_router(
            buckets.delete_router,
            prefix="/api/buckets",
            tags=["Buckets"],
        )
        app.include_router(
            objects.delete_router,
            prefix="/api/buckets",
            tags=["Objects"],
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.app_title,
            "version": settings.app_version,
            "allow_delete": settings.allow_delete,
        }
    )

    return app


# Create the application instance
# This is what uvicorn imports
app = create_app()


def run() -> None:
    """Console entry point: serve the app on ADDRESS:PORT."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "s3manager.main:app",
        host=settings.address,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_keep_alive=settings.timeout,
    )


# For debugging/development
if __name__ == "__main__":
    run()
