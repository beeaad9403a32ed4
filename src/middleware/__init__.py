"""Middleware components for the lead intake service.

Provides:
- Request correlation ID tracking
- Logging context enrichment
"""

from .correlation import (
    CorrelationIdMiddleware,
    configure_correlation_logging,
    get_correlation_id,
    propagate_correlation_headers,
    set_correlation_id,
)

__all__ = [
    "CorrelationIdMiddleware",
    "configure_correlation_logging",
    "get_correlation_id",
    "propagate_correlation_headers",
    "set_correlation_id",
]
