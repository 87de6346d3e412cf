"""Main application entrypoint for Humanoid Hub."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from humanoidhub.api.v1 import routes_health
from humanoidhub.api.v1.routes_models import router as models_router
from humanoidhub.api.v1.routes_upload import router as upload_router, v1_router as upload_v1_router
from humanoidhub.backend.factory import close_backends
from humanoidhub.core.config import settings
from humanoidhub.core.logging import setup_logging
from humanoidhub.core.middleware import HTTPErrorLoggingMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info(
        "Humanoid Hub service started",
        extra={
            "environment": settings.ENV,
            "record_backend": settings.RECORD_BACKEND,
            "storage_backend": settings.STORAGE_BACKEND,
        },
    )
    yield
    logger.info("Humanoid Hub service shutting down")
    await close_backends()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    setup_logging()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.add_middleware(HTTPErrorLoggingMiddleware)

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(models_router)
    app.include_router(upload_router)
    app.include_router(upload_v1_router)

    return app


# Export app instance for ASGI servers
app = create_app()
