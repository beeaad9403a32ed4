"""
FastAPI Routers.

Router modules:
- leads: Webform intake (POST/OPTIONS /api/leads/web)
- dashboard: Recent leads as JSON and HTML
- redirect: Attribution-preserving /wa redirect
- health: Liveness and readiness probes
"""

from .leads import router as leads_router
from .dashboard import router as dashboard_router
from .redirect import router as redirect_router
from .health import router as health_router

__all__ = [
    "leads_router",
    "dashboard_router",
    "redirect_router",
    "health_router",
]
