"""
Attribution Redirect

GET /wa?r=<target>&utm_source=...&gclid=...

Click-through links (WhatsApp buttons in ads) pass through here so their
attribution survives the hop: tracked query parameters are merged into
the lead_attrib cookie (first touch, TTL bounded, client_uid assigned) and
the visitor is redirected to the decoded target.
"""

import logging
from urllib.parse import unquote, urlsplit

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse

from config.settings import get_settings
from leads.attribution_cache import COOKIE_NAME, AttributionCache
from web.helpers.error_responses import json_envelope

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Attribution"])

ALLOWED_SCHEMES = ("http", "https", "whatsapp")


def _safe_target(target: str) -> str:
    """Decoded redirect target, or "" when it is not an allowed absolute URL."""
    decoded = unquote(target.strip())
    try:
        parts = urlsplit(decoded)
    except ValueError:
        return ""
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return ""
    if parts.scheme.lower() != "whatsapp" and not parts.netloc:
        return ""
    return decoded


@router.get("/wa", summary="Store attribution and redirect")
async def attribution_redirect(request: Request, r: str = Query("", description="Encoded target URL")):
    target = _safe_target(r) if r else ""
    if not target:
        return json_envelope(
            {"ok": False, "where": "redirect", "error": "Missing or invalid redirect target"},
            status_code=400,
            origin=request.headers.get("origin"),
        )

    settings = get_settings()
    cache = AttributionCache.from_json(request.cookies.get(COOKIE_NAME))
    if cache.is_expired(settings.attribution_ttl_days):
        cache = AttributionCache()
    cache = cache.merge(dict(request.query_params)).with_client_uid()

    response = RedirectResponse(url=target, status_code=307)
    response.set_cookie(
        COOKIE_NAME,
        cache.to_json(),
        max_age=settings.attribution_ttl_days * 24 * 60 * 60,
        path="/",
        samesite="lax",
    )
    logger.info(f"Attribution redirect: keys={sorted(cache.data)}")
    return response
