"""
Lead Intake Routes

Webform submission endpoint:
- POST    /api/leads/web : JSON, URL-encoded or multipart body -> {ok, id}
- OPTIONS /api/leads/web : CORS preflight

Status codes: 200 stored, 400 empty/invalid payload, 500 configuration or
storage failure. Every response is JSON and carries CORS headers.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from config.settings import get_settings
from leads.errors import LeadIntakeError
from leads.service import LeadIntakeService, get_lead_intake_service
from web.cors import cors_headers
from web.helpers.error_responses import json_envelope
from web.helpers.requests import build_raw_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leads", tags=["Leads"])


@router.options("/web", include_in_schema=False)
async def submit_lead_preflight(request: Request) -> Response:
    """CORS preflight for cross-origin form posts."""
    return Response(
        status_code=status.HTTP_204_NO_CONTENT,
        headers=cors_headers(request.headers.get("origin"), get_settings(), preflight=True),
    )


@router.post(
    "/web",
    summary="Submit a webform lead",
    description="Accepts any webform payload, normalizes it and stores one lead",
)
async def submit_lead(
    request: Request,
    service: LeadIntakeService = Depends(get_lead_intake_service),
):
    """
    Store one lead from a webform submission.

    Unknown field names, Hebrew labels, Elementor encodings and attribution
    spread across body, page URL and Referer are all normalized before the
    insert.
    """
    try:
        raw = await build_raw_request(request)
        result = await service.submit(raw)
    except LeadIntakeError:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while storing lead: {e}")
        raise LeadIntakeError("An internal error occurred") from e

    return json_envelope(
        {"ok": True, "id": result.lead_id},
        origin=request.headers.get("origin"),
    )
