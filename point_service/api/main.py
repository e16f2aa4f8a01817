"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from point_service import __version__
from point_service.api.errors import install_exception_handlers
from point_service.api.routes import points
from point_service.config import Settings, get_settings
from point_service.db_context import DatabaseManager
from point_service.log_config import configure_logging
from point_service.schema import create_schema

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool unless one is already registered under the configured name."""
    settings: Settings = app.state.settings
    logger.info("api_starting", application=settings.application_name)

    owns_pool = not DatabaseManager.has_pool(settings.db_pool_name)
    if owns_pool:
        await DatabaseManager.create_pool(settings.db_pool_name)
    if settings.create_schema:
        await create_schema(await DatabaseManager.get_pool(settings.db_pool_name))

    yield

    if owns_pool:
        await DatabaseManager.close_pool(settings.db_pool_name)
    logger.info("api_stopping")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Point Service",
        description="CRUD API for points",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    install_exception_handlers(app)
    app.include_router(points.router, tags=["Points"])

    return app
