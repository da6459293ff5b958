"""
Health check endpoint for the GX Services API.

Liveness only: the SMTP relay is checked per request by the contact
endpoint, not here.
"""
from datetime import datetime, timezone

from fastapi import APIRouter

from gx_backend.core.config import settings
from gx_backend.schemas.contact import HealthResponse

router = APIRouter(tags=["health"])

HEALTH_MESSAGE = "GX Services Backend API is running"


def utc_timestamp() -> str:
    """ISO8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns service health metadata for monitoring and uptime checks.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        message=HEALTH_MESSAGE,
        timestamp=utc_timestamp(),
        environment=settings.ENVIRONMENT,
    )
