import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from tortoise import Tortoise
from tortoise.contrib.fastapi import tortoise_exception_handlers

from .core.database import ConnectionProvider, DatabaseStatusCache, build_tortoise_config
from .core.exceptions import register_exception_handlers
from .core.logging_config import configure_logging
from .features.health.router import router as health_router
from .features.reports.router import router as reports_router

configure_logging()
logger = logging.getLogger(__name__)  # This logger will inherit from 'pos_reports'

TORTOISE_ORM_CONFIG = build_tortoise_config()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Connects Tortoise-ORM on startup and closes its connections on shutdown.
    The reports never create tables, the schema belongs to the POS system.
    """
    logger.info("Starting application...")
    await Tortoise.init(config=TORTOISE_ORM_CONFIG)
    logger.info("Tortoise-ORM has been initialized.")

    yield

    await Tortoise.close_connections()
    logger.info("Tortoise-ORM connections have been closed.")


app = FastAPI(
    title="POS Reports API",
    description="Read-only sales and gross profit reports for the point-of-sale system.",
    version="0.1.0",
    exception_handlers=tortoise_exception_handlers(),
    lifespan=lifespan,
)
register_exception_handlers(app)

# One provider and one status cache per app, reached through the dependencies in core.database
app.state.connection_provider = ConnectionProvider()
app.state.database_status_cache = DatabaseStatusCache()


@app.get("/")
async def read_root(request: Request):
    """
    Root endpoint for the API.
    """
    client_host = request.client.host if request.client else "unknown client"
    logger.info(f"Root endpoint '/' accessed by {client_host}")
    return {"message": "Welcome to the POS Reports API!"}


app.include_router(reports_router, prefix="/api/v1")
app.include_router(health_router, prefix="/api/v1")
