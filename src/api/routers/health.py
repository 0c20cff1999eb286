"""Health check endpoints."""
import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    storage: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check application and storage health."""
    redis_client = getattr(request.app.state, "redis_client", None)
    if redis_client is None or not redis_client.is_connected:
        return HealthResponse(status="healthy", storage="memory")

    if await redis_client.ping():
        return HealthResponse(status="healthy", storage="redis")
    logger.warning("Redis health check failed")
    return HealthResponse(status="degraded", storage="redis")
