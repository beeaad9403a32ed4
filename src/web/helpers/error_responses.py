"""
Standardized Error Responses - JSON envelopes for the intake API.

Every error leaving the service is JSON shaped:
    {"ok": false, "where": "<stage>", "error": "<message>", ...}
and carries the CORS headers needed by cross-origin forms.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from config.settings import get_settings
from leads.errors import LeadIntakeError, StorageError
from middleware.correlation import get_correlation_id
from web.cors import cors_headers

logger = logging.getLogger(__name__)


def json_envelope(
    content: Dict[str, Any],
    status_code: int = 200,
    origin: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    JSON response with CORS headers for the given origin.

    Args:
        content: Response body.
        status_code: HTTP status.
        origin: Request Origin header.
        headers: Extra headers.
    """
    all_headers = cors_headers(origin, get_settings())
    if headers:
        all_headers.update(headers)
    return JSONResponse(status_code=status_code, content=content, headers=all_headers)


def lead_error_response(exc: LeadIntakeError, origin: Optional[str] = None) -> JSONResponse:
    """Translate a LeadIntakeError into its JSON envelope."""
    content = exc.to_dict()
    correlation_id = get_correlation_id()
    if correlation_id:
        content["request_id"] = correlation_id
    return json_envelope(content, status_code=exc.status_code, origin=origin)


async def lead_intake_error_handler(request: Request, exc: LeadIntakeError) -> JSONResponse:
    """Exception handler registered on the app for LeadIntakeError."""
    if isinstance(exc, StorageError):
        logger.warning(f"Storage error on {request.url.path}: code={exc.code} message={exc.message}")
    elif exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    return lead_error_response(exc, request.headers.get("origin"))
