"""Health check endpoints."""

from enum import Enum

from fastapi import APIRouter, status
from pydantic import BaseModel

from dental_admin.config import settings
from dental_admin.dependencies import Registry

router = APIRouter()


class ServiceStatus(str, Enum):
    """Overall status reported by the health checks."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: ServiceStatus
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health of the BFF and of the clinic API behind it."""

    clinic_api_url: str
    clinic_api_reachable: bool
    workspaces: int


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Liveness of the BFF itself; the clinic API is not contacted."""
    return HealthResponse(
        status=ServiceStatus.HEALTHY,
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check(registry: Registry) -> DetailedHealthResponse:
    """
    Probe the clinic API and count the open operator workspaces.

    The BFF is ``degraded`` while the clinic API cannot be reached: logins
    and every admin view depend on it.

    Returns:
        Detailed health status
    """
    reachable = await registry.probe_remote()
    return DetailedHealthResponse(
        status=ServiceStatus.HEALTHY if reachable else ServiceStatus.DEGRADED,
        version=settings.app_version,
        environment=settings.environment,
        clinic_api_url=settings.clinic_api_base_url,
        clinic_api_reachable=reachable,
        workspaces=len(registry),
    )


@router.get("/ping", status_code=status.HTTP_200_OK, tags=["Health"], summary="Simple ping")
async def ping() -> dict[str, str]:
    """Answer ``pong``."""
    return {"message": "pong"}
