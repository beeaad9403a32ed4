"""
FastAPI application for the lead intake service.

Routes:
- POST    /api/leads/web       : webform submission -> {ok, id}
- OPTIONS /api/leads/web       : CORS preflight
- GET     /api/leads/dashboard : recent leads (JSON)
- GET     /dashboard/leads     : recent leads (HTML)
- GET     /wa                  : attribution cookie + redirect
- GET     /health[/live|/ready]: probes
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config.settings import get_settings
from leads.errors import LeadIntakeError
from middleware.correlation import CorrelationIdMiddleware, configure_correlation_logging
from web.helpers.error_responses import json_envelope, lead_intake_error_handler
from web.routers import dashboard_router, health_router, leads_router, redirect_router

logger = logging.getLogger(__name__)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Query/path parameter errors in the same envelope as intake errors."""
    issues = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        issues.append({"field": field, "message": error["msg"], "code": error["type"]})
    return json_envelope(
        {"ok": False, "where": "validation", "error": "Invalid request parameters", "issues": issues},
        status_code=400,
        origin=request.headers.get("origin"),
    )


def create_app() -> FastAPI:
    """Build the application with middleware, routers and error handlers."""
    settings = get_settings()
    configure_correlation_logging(settings.log_level)

    app = FastAPI(title=settings.name, version=settings.version, debug=settings.debug)

    # =========================================================================
    # MIDDLEWARE
    # =========================================================================
    app.add_middleware(CorrelationIdMiddleware)

    # =========================================================================
    # ROUTES
    # =========================================================================
    app.include_router(leads_router)
    app.include_router(dashboard_router)
    app.include_router(redirect_router)
    app.include_router(health_router)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================
    app.add_exception_handler(LeadIntakeError, lead_intake_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    if not settings.storage.is_configured:
        logger.warning("Storage is not configured; submissions will fail with a configuration error")
    logger.info(f"{settings.name} {settings.version} started (environment={settings.environment})")
    return app


app = create_app()
