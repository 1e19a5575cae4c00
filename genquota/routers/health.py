"""Health check endpoint."""

from fastapi import APIRouter

from genquota.models import HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Liveness probe; does not touch the usage store.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(ok=True)
