"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.container import Container
from api.dependencies import get_container, rate_limit_public
from db.session import check_database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    redis: str


@router.get(
    "/health",
    response_model=HealthResponse,
    dependencies=[Depends(rate_limit_public)],
)
async def health_check(
    container: Container = Depends(get_container),
) -> HealthResponse:
    """Check application, database, and Redis health. Redis being down only degrades."""
    db_status = "healthy"
    try:
        await check_database(container.engine)
    except Exception:
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    if not container.settings.redis_enabled:
        redis_status = "disabled"
    elif await container.redis.ping():
        redis_status = "healthy"
    else:
        redis_status = "unavailable"

    healthy = db_status == "healthy" and redis_status != "unavailable"
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        database=db_status,
        redis=redis_status,
    )
