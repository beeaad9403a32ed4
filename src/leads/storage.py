"""
Lead Storage

Thin client for the remote lead table, spoken over PostgREST (Supabase):
- insert(row) -> id        POST /rest/v1/leads
- recent(limit) -> rows    GET  /rest/v1/leads_dashboard?order=created_at.desc

Every call is attempted once. Errors from the store are raised as
StorageError carrying {message, details, hint, code} unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def _error_from_response(response: httpx.Response) -> StorageError:
    """Build a StorageError from a PostgREST error body."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        return StorageError(
            message=response.text or f"HTTP {response.status_code}",
            http_status=response.status_code,
        )
    return StorageError(
        message=payload.get("message") or payload.get("error") or f"HTTP {response.status_code}",
        details=payload.get("details"),
        hint=payload.get("hint"),
        code=payload.get("code"),
        http_status=response.status_code,
    )


class SupabaseLeadStore:
    """
    Lead table client.

    Args:
        url: Project base URL (e.g. https://xyz.supabase.co)
        service_key: Service role key, sent as apikey and bearer token
        timeout: Request timeout in seconds
        leads_table: Table receiving inserts
        dashboard_view: View read by recent()
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        leads_table: str = "leads",
        dashboard_view: str = "leads_dashboard",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self.leads_table = leads_table
        self.dashboard_view = dashboard_view
        self._transport = transport

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
            transport=self._transport,
        )

    async def insert(self, row: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Any:
        """
        Insert one lead and return its server-assigned id.

        Raises:
            StorageError: The store rejected the row or could not be reached.
        """
        try:
            async with self._client() as client:
                response = await client.post(
                    f"/{self.leads_table}",
                    params={"select": "id"},
                    json=row,
                    headers=self._headers({"Prefer": "return=representation", **(headers or {})}),
                )
        except httpx.HTTPError as e:
            logger.error(f"Lead insert failed to reach storage: {e}")
            raise StorageError(message=f"Storage unreachable: {e.__class__.__name__}") from e

        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.error(f"Lead insert rejected: code={error.code} message={error.message}")
            raise error

        try:
            payload = response.json()
        except ValueError as e:
            raise StorageError(message="Storage returned a non-JSON insert response") from e
        record = payload[0] if isinstance(payload, list) and payload else payload
        if not isinstance(record, dict) or "id" not in record:
            raise StorageError(message="Storage response did not include an id")
        return record["id"]

    async def recent(self, limit: int = 200, headers: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """
        Most recent dashboard rows, newest first.

        Raises:
            StorageError: The store rejected the query or could not be reached.
        """
        try:
            async with self._client() as client:
                response = await client.get(
                    f"/{self.dashboard_view}",
                    params={"select": "*", "order": "created_at.desc", "limit": str(limit)},
                    headers=self._headers(headers),
                )
        except httpx.HTTPError as e:
            logger.error(f"Dashboard query failed to reach storage: {e}")
            raise StorageError(message=f"Storage unreachable: {e.__class__.__name__}") from e

        if response.status_code >= 400:
            raise _error_from_response(response)
        try:
            rows = response.json()
        except ValueError as e:
            raise StorageError(message="Storage returned a non-JSON dashboard response") from e
        return rows if isinstance(rows, list) else []
