from fastapi import APIRouter, Depends, Response, status

from filehub.api.dependencies import get_hub
from filehub.api.schemas import HealthResponse, ReadinessResponse
from filehub.core.hub import FileHub

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/healthz/live", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    """Liveness probe: is the process alive?"""
    return HealthResponse()


@router.get("/healthz/ready", response_model=ReadinessResponse)
async def readiness(
    response: Response,
    hub: FileHub = Depends(get_hub),
) -> ReadinessResponse:
    """Readiness probe: can the remote store be reached?"""
    if await hub.remote.ping():
        return ReadinessResponse(status="ok", remote="up")
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="degraded", remote="down")
