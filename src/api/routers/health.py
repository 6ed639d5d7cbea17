"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_controller
from core.redis import get_redis_client
from services.session_controller import SessionController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    redis: str
    session: str


async def check_redis_health() -> str:
    """Check Redis connectivity. Returns 'connected' or 'unavailable'."""
    redis_client = get_redis_client()
    if redis_client is None:
        return "unavailable"
    try:
        if await redis_client.ping():
            return "connected"
        return "unavailable"
    except Exception:
        logger.exception("Redis health check failed")
        return "unavailable"


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_async_session),
    controller: SessionController | None = Depends(get_controller),
) -> HealthResponse:
    """
    Report database, Redis and the requesting browser's session state.

    Note: App returns 'healthy' even if Redis is unavailable (degraded mode).
    Without Redis there are no live updates, but every intent still works.
    A failing database reports 'degraded'.
    """
    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    authenticated = controller is not None and controller.context.is_authenticated
    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        database=db_status,
        redis=await check_redis_health(),
        session="authenticated" if authenticated else "anonymous",
    )
