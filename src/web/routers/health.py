"""
Health Check Endpoints

Provides:
1. /health - Overall status with configuration checks
2. /health/live - Simple liveness probe (for k8s)
3. /health/ready - Readiness probe; 503 until storage is configured
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from config.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Application start time for uptime calculation
_start_time = datetime.now(timezone.utc)


def _check_storage() -> Dict[str, Any]:
    """Storage credentials are present (no network call)."""
    storage = get_settings().storage
    if storage.is_configured:
        return {"status": "healthy", "table": storage.leads_table}
    return {
        "status": "unhealthy",
        "error": "SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is not set",
    }


def _check_geolocation() -> Dict[str, Any]:
    geo = get_settings().geo
    if not geo.enabled:
        return {"status": "warning", "error": "Geolocation enrichment disabled"}
    return {"status": "healthy", "timeout_seconds": geo.timeout}


@router.get("/health")
async def health_check() -> JSONResponse:
    """
    Overall health.

    Returns 200 when healthy or degraded, 503 if any critical check fails.
    """
    settings = get_settings()
    checks = {
        "storage": _check_storage(),
        "geolocation": _check_geolocation(),
    }

    statuses = [c.get("status", "unknown") for c in checks.values()]
    if "unhealthy" in statuses:
        overall_status = "unhealthy"
        status_code = 503
    elif "warning" in statuses:
        overall_status = "degraded"
        status_code = 200
    else:
        overall_status = "healthy"
        status_code = 200

    uptime = datetime.now(timezone.utc) - _start_time
    response = {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": str(uptime).split(".")[0],
        "version": settings.version,
        "environment": settings.environment,
        "python_version": sys.version.split()[0],
        "checks": checks,
    }
    return JSONResponse(content=response, status_code=status_code)


@router.get("/health/live")
async def liveness_probe() -> Response:
    """If the server responds, it's alive."""
    return Response(content="OK", media_type="text/plain")


@router.get("/health/ready")
async def readiness_probe() -> JSONResponse:
    """Ready once leads can be stored."""
    storage_check = _check_storage()
    if storage_check["status"] == "healthy":
        return JSONResponse(content={"status": "ready", "storage": "configured"}, status_code=200)

    logger.warning(f"Readiness check failed: {storage_check['error']}")
    return JSONResponse(
        content={"status": "not_ready", "reason": storage_check["error"]},
        status_code=503,
    )
