"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from pydantic import BaseModel
from starlette.responses import Response

from hubauth.core.logging import get_logger
from hubauth.dependencies import DaoFactoryDep, SettingsDep
from hubauth.models.api import SuccessResponse

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthStatus(BaseModel):
    """Health status response model."""

    status: str
    version: str
    service: str


class ReadinessStatus(BaseModel):
    """Readiness status response model."""

    status: str
    version: str
    service: str
    backend: str
    database: str


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(settings: SettingsDep) -> SuccessResponse[HealthStatus]:
    """Basic liveness check with version information."""
    logger.debug("health_check")

    return SuccessResponse(
        data=HealthStatus(
            status="healthy",
            version=settings.version,
            service=settings.app_name,
        )
    )


@router.get("/health/ready")
async def readiness_check(request: Request, settings: SettingsDep, daos: DaoFactoryDep) -> Response:
    """Readiness check; in database mode the database must answer a trivial query.

    Returns 200 when ready and 503 otherwise.
    """
    logger.debug("readiness_check", backend=daos.backend)

    database = "not_configured"
    ready = True
    if daos.backend == "database":
        try:
            await request.app.state.db.ping()
            database = "connected"
        except Exception as e:
            logger.error("readiness_check_failed", error=str(e))
            database = "disconnected"
            ready = False

    response_data = SuccessResponse(
        data=ReadinessStatus(
            status="ready" if ready else "not_ready",
            version=settings.version,
            service=settings.app_name,
            backend=daos.backend,
            database=database,
        )
    )

    if ready:
        logger.info("readiness_check_passed")

    return Response(
        content=response_data.model_dump_json(),
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        media_type="application/json",
    )
