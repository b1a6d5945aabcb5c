from datetime import UTC, datetime

from fastapi import APIRouter

from credgate.schemas.health_check import HealthCheckResponse

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health Check",
)
async def health_check():
    return HealthCheckResponse(
        status="ok",
        message="Server is running",
        timestamp=datetime.now(UTC),
    )
