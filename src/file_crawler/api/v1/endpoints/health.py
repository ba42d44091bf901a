"""Health check endpoint."""

from fastapi import APIRouter

from file_crawler.core.exceptions import IndexServiceError
from file_crawler.dependencies import QdrantServiceDep, SettingsDep
from file_crawler.schemas.health import HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Returns the health status of the API and its vector database",
)
async def health_check(settings: SettingsDep, qdrant_service: QdrantServiceDep) -> HealthResponse:
    """Check API health and return status.

    Args:
        settings: Injected application settings.
        qdrant_service: Injected Qdrant service.

    Returns:
        HealthResponse: Health status information.
    """
    try:
        await qdrant_service.ping()
        qdrant = "ok"
    except IndexServiceError:
        qdrant = "unavailable"

    return HealthResponse(
        status="healthy" if qdrant == "ok" else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        qdrant=qdrant,
    )
