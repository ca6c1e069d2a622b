"""
Health Check Routes

FastAPI endpoints for service health and readiness checks.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from packsql import __version__
from packsql.models.api import HealthResponse, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    """
    Basic liveness check.

    Returns 200 OK if the service is running.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness() -> JSONResponse:
    """
    Readiness check for question answering.

    Checks:
    - Database connection is active
    - Synthesis runner is initialized
    - A slice is active

    Returns:
        200 OK if all checks pass
        503 Service Unavailable if any check fails
    """
    from packsql.api.main import app_state

    checks: dict[str, bool] = {}

    try:
        connector = app_state["connector"]
        if connector is not None:
            await connector.execute("SELECT 1")
            checks["database"] = True
        else:
            checks["database"] = False
    except Exception as e:
        logger.warning(f"Database readiness check failed: {e}")
        checks["database"] = False

    checks["runner"] = app_state["runner"] is not None
    checks["slice"] = app_state["cache"].try_get() is not None

    all_ready = all(checks.values())
    response = ReadinessResponse(
        status="ready" if all_ready else "not_ready",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if all_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(),
    )
