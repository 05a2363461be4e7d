"""
Health check endpoints.

- /health: liveness (is the process running?)
- /health/ready: readiness (is there a valid bucket configuration to serve?)

Readiness does not call the storage providers; a bucket whose credentials
are wrong still shows up as ready and fails on first use.
"""

import logging
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ...config.buckets import BucketConfigError, load_bucket_configs
from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={"mock_mode": settings.storage_mock_mode},
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if at least one valid bucket is configured, 503 otherwise.",
    responses={503: {"description": "Service not ready", "model": ReadinessResponse}},
)
async def readiness_check(settings: SettingsDep, response: Response) -> ReadinessResponse:
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="environment",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}",
        ))
    else:
        checks.append(ReadinessCheck(name="environment", status="ok"))

    try:
        configs = load_bucket_configs(settings)
    except BucketConfigError as e:
        checks.append(ReadinessCheck(name="buckets", status="error", error=str(e)))
    else:
        if configs:
            checks.append(ReadinessCheck(name="buckets", status="ok"))
        else:
            checks.append(ReadinessCheck(name="buckets", status="error", error="No buckets configured"))

    all_ok = all(check.status == "ok" for check in checks)
    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={"checks": [c.model_dump() for c in checks if c.status != "ok"]},
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
