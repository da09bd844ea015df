from fastapi import APIRouter, Depends, Response, status

from jsonapi_kit.api.dependencies import get_jsonapi
from jsonapi_kit.api.schemas import HealthResponse, ReadinessResponse
from jsonapi_kit.core.engine import JSONAPI

router = APIRouter()


@router.get("/healthz/live", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    """Liveness probe: is the process alive?"""
    return HealthResponse()


@router.get("/healthz/ready", response_model=ReadinessResponse)
async def readiness(
    response: Response,
    jsonapi: JSONAPI = Depends(get_jsonapi),
) -> ReadinessResponse:
    """Readiness probe: are any resources registered?"""
    count = len(jsonapi.registry)
    if count:
        return ReadinessResponse(status="ok", resources=count)
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="degraded", resources=0)
