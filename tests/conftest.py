"""Pytest configuration and fixtures for test suite."""

import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from leads.storage import SupabaseLeadStore  # noqa: E402
from tests.helpers.lead_fakes import TEST_SERVICE_KEY, TEST_STORAGE_URL  # noqa: E402

_ENV_VARS = (
    "SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_KEY",
    "SUPABASE_TIMEOUT",
    "LEADS_CORS_ORIGINS",
    "LEADS_REQUIRE_CONTACT",
    "LEADS_ATTRIBUTION_TTL_DAYS",
    "LEADS_DASHBOARD_LIMIT",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Start every test without storage credentials and with geolocation off."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GEO_ENABLED", "false")
    yield monkeypatch


@pytest.fixture
def storage_env(monkeypatch):
    """Configure storage credentials through the environment."""
    monkeypatch.setenv("SUPABASE_URL", TEST_STORAGE_URL)
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", TEST_SERVICE_KEY)
    return monkeypatch


# =============================================================================
# STORAGE FAKES
# =============================================================================

@pytest.fixture
def storage_requests() -> List[httpx.Request]:
    """Requests seen by the fake storage endpoint."""
    return []


@pytest.fixture
def make_store(storage_requests) -> Callable[..., SupabaseLeadStore]:
    """
    Build a SupabaseLeadStore backed by httpx.MockTransport.

    Usage:
        store = make_store(lambda request: httpx.Response(201, json=[{"id": 1}]))
    """

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> SupabaseLeadStore:
        def _record(request: httpx.Request) -> httpx.Response:
            storage_requests.append(request)
            return handler(request)

        return SupabaseLeadStore(
            url=TEST_STORAGE_URL,
            service_key=TEST_SERVICE_KEY,
            transport=httpx.MockTransport(_record),
        )

    return _make


@pytest.fixture
def accepting_store(make_store) -> SupabaseLeadStore:
    """Store that accepts every insert and assigns id 101."""
    return make_store(lambda request: httpx.Response(201, json=[{"id": 101}]))


# =============================================================================
# API CLIENT
# =============================================================================

@pytest.fixture
def api_client():
    """
    TestClient factory with the intake service overridden.

    Usage:
        def test_submit(api_client, accepting_store):
            client = api_client(LeadIntakeService(store=accepting_store))
            response = client.post("/api/leads/web", json={...})
    """
    from fastapi.testclient import TestClient

    from leads.service import get_lead_intake_service
    from web.app import app

    def _make(service=None) -> TestClient:
        if service is not None:
            app.dependency_overrides[get_lead_intake_service] = lambda: service
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()
