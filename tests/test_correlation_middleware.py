"""Tests for correlation ID middleware."""

import logging

import pytest
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from middleware.correlation import (
    CORRELATION_ID_HEADER,
    MAX_CORRELATION_ID_LENGTH,
    REQUEST_ID_HEADER,
    CorrelationIdFilter,
    CorrelationIdMiddleware,
    configure_correlation_logging,
    get_correlation_id,
    propagate_correlation_headers,
    reset_correlation_id,
    set_correlation_id,
)


def _record():
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg="Test message",
        args=(),
        exc_info=None,
    )


class TestCorrelationIdContext:
    """Tests for correlation ID context functions."""

    def test_set_and_get(self):
        """Set and get correlation ID."""
        token = set_correlation_id("test-correlation-123")
        try:
            assert get_correlation_id() == "test-correlation-123"
        finally:
            reset_correlation_id(token)

    def test_reset_restores_previous_value(self):
        """Reset restores the previous correlation ID."""
        token1 = set_correlation_id("original-id")
        try:
            token2 = set_correlation_id("new-id")
            assert get_correlation_id() == "new-id"

            reset_correlation_id(token2)
            assert get_correlation_id() == "original-id"
        finally:
            reset_correlation_id(token1)


class TestCorrelationIdMiddleware:
    """Tests for CorrelationIdMiddleware."""

    @pytest.fixture
    def app(self):
        """Create test application with middleware."""
        async def homepage(request):
            return JSONResponse({
                "correlation_id": get_correlation_id(),
                "request_state_id": getattr(request.state, "correlation_id", None),
            })

        app = Starlette(routes=[Route("/", homepage)])
        app.add_middleware(CorrelationIdMiddleware)
        return app

    @pytest.fixture
    def client(self, app):
        """Create test client."""
        return TestClient(app)

    def test_generates_correlation_id(self, client):
        """Middleware generates a UUID when none is provided."""
        response = client.get("/")

        assert response.status_code == 200
        cid = response.headers[CORRELATION_ID_HEADER]
        assert response.headers[REQUEST_ID_HEADER] == cid
        assert len(cid) == 36

    def test_uses_provided_correlation_id(self, client):
        """Middleware uses correlation ID from request header."""
        response = client.get("/", headers={CORRELATION_ID_HEADER: "provided-id-123"})

        assert response.headers[CORRELATION_ID_HEADER] == "provided-id-123"
        data = response.json()
        assert data["correlation_id"] == "provided-id-123"
        assert data["request_state_id"] == "provided-id-123"

    def test_oversized_incoming_id_is_replaced(self, client):
        """IDs longer than the limit are not trusted."""
        oversized = "x" * (MAX_CORRELATION_ID_LENGTH + 1)
        response = client.get("/", headers={CORRELATION_ID_HEADER: oversized})

        assert response.headers[CORRELATION_ID_HEADER] != oversized
        assert len(response.headers[CORRELATION_ID_HEADER]) == 36

    def test_context_is_cleared_after_request(self, client):
        """No correlation ID leaks out of the request."""
        client.get("/", headers={CORRELATION_ID_HEADER: "scoped-id"})

        assert get_correlation_id() != "scoped-id"

    def test_custom_generator(self):
        """Middleware can use custom ID generator."""
        counter = [0]

        def custom_generator():
            counter[0] += 1
            return f"custom-{counter[0]}"

        async def homepage(request):
            return JSONResponse({"id": get_correlation_id()})

        app = Starlette(routes=[Route("/", homepage)])
        app.add_middleware(CorrelationIdMiddleware, generator=custom_generator)
        client = TestClient(app)

        assert client.get("/").headers[CORRELATION_ID_HEADER] == "custom-1"
        assert client.get("/").headers[CORRELATION_ID_HEADER] == "custom-2"


class TestCorrelationIdFilter:
    """Tests for CorrelationIdFilter logging filter."""

    def test_adds_correlation_id_to_record(self):
        record = _record()
        token = set_correlation_id("test-log-id")
        try:
            assert CorrelationIdFilter().filter(record) is True
        finally:
            reset_correlation_id(token)

        assert record.correlation_id == "test-log-id"

    def test_uses_dash_when_no_correlation_id(self):
        record = _record()
        token = set_correlation_id(None)
        try:
            CorrelationIdFilter().filter(record)
        finally:
            reset_correlation_id(token)

        assert record.correlation_id == "-"


class TestPropagateCorrelationHeaders:
    """Tests for propagate_correlation_headers function."""

    def test_adds_to_existing_headers(self):
        existing = {"Prefer": "return=representation"}
        token = set_correlation_id("merge-test-id")
        try:
            headers = propagate_correlation_headers(existing)
        finally:
            reset_correlation_id(token)

        assert headers == {"Prefer": "return=representation", CORRELATION_ID_HEADER: "merge-test-id"}
        assert CORRELATION_ID_HEADER not in existing

    def test_returns_copy_without_correlation(self):
        existing = {"Prefer": "return=representation"}
        token = set_correlation_id(None)
        try:
            headers = propagate_correlation_headers(existing)
        finally:
            reset_correlation_id(token)

        assert headers == existing
        assert headers is not existing


class TestConfigureCorrelationLogging:
    """Tests for configure_correlation_logging function."""

    @pytest.fixture
    def clean_root_logger(self):
        root = logging.getLogger()
        original_handlers = list(root.handlers)
        original_level = root.level
        root.handlers = [h for h in root.handlers if not getattr(h, "_lead_correlation_handler", False)]
        yield root
        root.handlers = original_handlers
        root.setLevel(original_level)

    def test_installs_filtered_handler(self, clean_root_logger):
        handler = configure_correlation_logging("DEBUG")

        assert handler in clean_root_logger.handlers
        assert any(isinstance(f, CorrelationIdFilter) for f in handler.filters)
        assert clean_root_logger.level == logging.DEBUG

    def test_is_idempotent(self, clean_root_logger):
        first = configure_correlation_logging(logging.INFO)
        second = configure_correlation_logging(logging.WARNING)

        assert first is second
        assert second.level == logging.WARNING
        assert sum(1 for h in clean_root_logger.handlers if h is first) == 1

    def test_unknown_level_name_falls_back_to_info(self, clean_root_logger):
        handler = configure_correlation_logging("chatty")

        assert handler.level == logging.INFO
