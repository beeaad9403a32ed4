"""
Leads Dashboard Routes

Read-only view of the most recent leads:
- GET /api/leads/dashboard : JSON rows, newest first
- GET /dashboard/leads     : HTML table of the same rows
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from leads.errors import LeadIntakeError
from leads.service import LeadIntakeService, get_lead_intake_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Dashboard"])

templates = Jinja2Templates(directory=os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates"))

MAX_DASHBOARD_LIMIT = 500

# (column key, header label)
DASHBOARD_COLUMNS = [
    ("created_at", "תאריך יצירה"),
    ("full_name", "שם מלא"),
    ("email", "אימייל"),
    ("phone", "טלפון"),
    ("utm_source", "Source"),
    ("utm_campaign", "Campaign"),
    ("utm_medium", "Medium"),
    ("ad_group", "Ad Group"),
    ("keyword", "Keyword"),
    ("status", "סטטוס"),
]


def format_date(value: Optional[str]) -> str:
    """Render an ISO timestamp as DD.MM.YYYY, HH:MM:SS; unparseable input is returned as-is."""
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%d.%m.%Y, %H:%M:%S")
    except ValueError:
        return value


def _display_rows(rows: List[Dict[str, Any]]) -> List[List[str]]:
    display = []
    for row in rows:
        cells = []
        for key, _ in DASHBOARD_COLUMNS:
            value = row.get(key)
            if key == "created_at":
                cells.append(format_date(value))
            else:
                cells.append("" if value is None else str(value))
        display.append(cells)
    return display


@router.get("/api/leads/dashboard", summary="Recent leads")
async def list_recent_leads(
    limit: Optional[int] = Query(None, ge=1, le=MAX_DASHBOARD_LIMIT),
    service: LeadIntakeService = Depends(get_lead_intake_service),
):
    """Most recent leads from the dashboard view, newest first."""
    rows = await service.recent_leads(limit)
    return {"ok": True, "count": len(rows), "leads": rows}


@router.get("/dashboard/leads", response_class=HTMLResponse, include_in_schema=False)
async def leads_dashboard_page(
    request: Request,
    service: LeadIntakeService = Depends(get_lead_intake_service),
):
    """HTML leads table."""
    error: Optional[str] = None
    rows: List[Dict[str, Any]] = []
    try:
        rows = await service.recent_leads()
    except LeadIntakeError as e:
        logger.warning(f"Dashboard could not load leads: {e.message}")
        error = e.message

    return templates.TemplateResponse(
        request,
        "leads_dashboard.html",
        {
            "columns": [label for _, label in DASHBOARD_COLUMNS],
            "rows": _display_rows(rows),
            "error": error,
        },
    )
