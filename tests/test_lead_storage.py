"""Tests for the PostgREST lead store."""

import httpx
import pytest

from leads.errors import StorageError
from tests.helpers.lead_fakes import TEST_SERVICE_KEY, inserted_row


class TestInsert:
    """Tests for SupabaseLeadStore.insert()."""

    @pytest.mark.asyncio
    async def test_returns_assigned_id(self, accepting_store, storage_requests):
        lead_id = await accepting_store.insert({"full_name": "Dana", "status": "new"})

        assert lead_id == 101
        request = storage_requests[0]
        assert request.method == "POST"
        assert request.url.path == "/rest/v1/leads"
        assert request.url.params["select"] == "id"
        assert request.headers["apikey"] == TEST_SERVICE_KEY
        assert request.headers["authorization"] == f"Bearer {TEST_SERVICE_KEY}"
        assert request.headers["prefer"] == "return=representation"
        assert inserted_row(request) == {"full_name": "Dana", "status": "new"}

    @pytest.mark.asyncio
    async def test_forwards_extra_headers(self, accepting_store, storage_requests):
        await accepting_store.insert({"phone": "0501234567"}, headers={"X-Correlation-ID": "abc-123"})

        assert storage_requests[0].headers["x-correlation-id"] == "abc-123"

    @pytest.mark.asyncio
    async def test_single_object_response(self, make_store):
        store = make_store(lambda request: httpx.Response(201, json={"id": "uuid-1"}))

        assert await store.insert({"phone": "0501234567"}) == "uuid-1"

    @pytest.mark.asyncio
    async def test_error_payload_is_surfaced_unchanged(self, make_store):
        store = make_store(lambda request: httpx.Response(400, json={
            "code": "23502",
            "message": 'null value in column "phone" violates not-null constraint',
            "details": "Failing row contains (...)",
            "hint": None,
        }))

        with pytest.raises(StorageError) as exc_info:
            await store.insert({"full_name": "Dana"})

        error = exc_info.value
        assert error.code == "23502"
        assert error.http_status == 400
        assert error.to_dict() == {
            "ok": False,
            "where": "supabase",
            "error": 'null value in column "phone" violates not-null constraint',
            "supabase_error": {
                "message": 'null value in column "phone" violates not-null constraint',
                "details": "Failing row contains (...)",
                "hint": None,
                "code": "23502",
            },
        }

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, make_store):
        store = make_store(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(StorageError) as exc_info:
            await store.insert({"full_name": "Dana"})

        assert exc_info.value.message == "Bad Gateway"
        assert exc_info.value.code is None

    @pytest.mark.asyncio
    async def test_transport_error(self, make_store):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StorageError) as exc_info:
            await make_store(handler).insert({"full_name": "Dana"})

        assert exc_info.value.code is None
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_missing_id_is_an_error(self, make_store):
        store = make_store(lambda request: httpx.Response(201, json=[]))

        with pytest.raises(StorageError):
            await store.insert({"full_name": "Dana"})

    @pytest.mark.asyncio
    async def test_insert_is_attempted_once(self, make_store, storage_requests):
        store = make_store(lambda request: httpx.Response(503, json={"message": "unavailable"}))

        with pytest.raises(StorageError):
            await store.insert({"full_name": "Dana"})

        assert len(storage_requests) == 1


class TestRecent:
    """Tests for SupabaseLeadStore.recent()."""

    @pytest.mark.asyncio
    async def test_reads_dashboard_view_newest_first(self, make_store, storage_requests):
        rows = [{"id": 2, "full_name": "B"}, {"id": 1, "full_name": "A"}]
        store = make_store(lambda request: httpx.Response(200, json=rows))

        assert await store.recent(limit=50) == rows
        request = storage_requests[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/leads_dashboard"
        assert request.url.params["order"] == "created_at.desc"
        assert request.url.params["limit"] == "50"
        assert request.url.params["select"] == "*"

    @pytest.mark.asyncio
    async def test_error_is_raised(self, make_store):
        store = make_store(lambda request: httpx.Response(404, json={
            "code": "42P01", "message": 'relation "leads_dashboard" does not exist',
        }))

        with pytest.raises(StorageError) as exc_info:
            await store.recent()

        assert exc_info.value.code == "42P01"
