"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str
    storage_backend: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name, version and storage backend.
    """
    from shopcore.infrastructure.config import settings

    return HealthResponse(
        status="healthy",
        service="shopcore-api",
        version=settings.api_version,
        storage_backend=settings.storage_backend,
    )


@router.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Check if the inventory store answers queries."""
    from shopcore.infrastructure.store import get_inventory_store

    await get_inventory_store().list_locations()
    return {"status": "ready"}
