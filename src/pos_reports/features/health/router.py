import datetime
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ...core.database import (
    ConnectionProvider, DatabaseStatusCache, check_database_ready,
    get_connection_provider, get_database_status_cache,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def get_health(
    provider: Annotated[ConnectionProvider, Depends(get_connection_provider)],
    cache: Annotated[DatabaseStatusCache, Depends(get_database_status_cache)],
):
    """
    Reports whether the database can serve reports.

    The answer is cached for DB_STATUS_CACHE_TTL_SECONDS; POST
    /reports/refresh-cache forgets it.
    """
    ready = await cache.is_ready(lambda: check_database_ready(provider))
    body = {
        "status": "healthy" if ready else "unhealthy",
        "database": "connected" if ready else "disconnected",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }
    if not ready:
        logger.warning("Health check failed: database not ready")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
