"""Request Correlation ID Middleware.

Ties together every log line and downstream call made for one submission.
The correlation ID is:
- Taken from the X-Correlation-ID request header, or generated
- Stored in a ContextVar for the duration of the request
- Added to log records by CorrelationIdFilter
- Forwarded to the storage collaborator
- Echoed back in the response headers

Usage:
    app.add_middleware(CorrelationIdMiddleware)
    configure_correlation_logging(level=logging.INFO)
"""

from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar, Token
from typing import Any, Callable, Dict, Optional, Union

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


_correlation_id_ctx: ContextVar[Optional[str]] = ContextVar(
    "correlation_id",
    default=None,
)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Incoming IDs longer than this are replaced rather than trusted
MAX_CORRELATION_ID_LENGTH = 128

DEFAULT_LOG_FORMAT = (
    "%(asctime)s [%(correlation_id)s] %(levelname)s "
    "%(name)s: %(message)s"
)


def get_correlation_id() -> Optional[str]:
    """Correlation ID of the current request, if any."""
    return _correlation_id_ctx.get()


def set_correlation_id(correlation_id: Optional[str]) -> Token[Optional[str]]:
    """Set the correlation ID; returns a token for reset_correlation_id()."""
    return _correlation_id_ctx.set(correlation_id)


def reset_correlation_id(token: Token[Optional[str]]) -> None:
    _correlation_id_ctx.reset(token)


def _accept_incoming(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = value.strip()
    if not value or len(value) > MAX_CORRELATION_ID_LENGTH or not value.isprintable():
        return None
    return value


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Assign a correlation ID to each request and echo it in the response."""

    def __init__(
        self,
        app,
        header_name: str = CORRELATION_ID_HEADER,
        generator: Optional[Callable[[], str]] = None,
    ):
        super().__init__(app)
        self.header_name = header_name
        self.generator = generator or (lambda: str(uuid.uuid4()))

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        correlation_id = _accept_incoming(request.headers.get(self.header_name)) or self.generator()
        token = set_correlation_id(correlation_id)
        try:
            request.state.correlation_id = correlation_id
            response = await call_next(request)
            response.headers[self.header_name] = correlation_id
            response.headers[REQUEST_ID_HEADER] = correlation_id
            return response
        finally:
            reset_correlation_id(token)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to every record ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True


def configure_correlation_logging(
    level: Union[int, str] = logging.INFO,
    log_format: Optional[str] = None,
) -> logging.Handler:
    """
    Install a stream handler that prints correlation IDs.

    Safe to call more than once: an existing handler installed by this
    function is reused.

    Args:
        level: Logging level (int or name such as "INFO").
        log_format: Custom format (must include %(correlation_id)s).

    Returns:
        The handler attached to the root logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if getattr(handler, "_lead_correlation_handler", False):
            handler.setLevel(level)
            root_logger.setLevel(level)
            return handler

    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(logging.Formatter(log_format or DEFAULT_LOG_FORMAT))
    handler.setLevel(level)
    handler._lead_correlation_handler = True

    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return handler


def propagate_correlation_headers(headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Headers for a downstream call, with the current correlation ID added.

    Args:
        headers: Existing headers to extend.

    Returns:
        New dict; the input is not modified.
    """
    result = dict(headers) if headers else {}
    correlation_id = get_correlation_id()
    if correlation_id:
        result[CORRELATION_ID_HEADER] = correlation_id
    return result
