"""
Web Helpers - Reusable utilities for API endpoints.

Contains:
- Standardized JSON error envelopes
- Request adaptation for the intake pipeline
"""

from .error_responses import json_envelope, lead_error_response, lead_intake_error_handler
from .requests import build_raw_request

__all__ = [
    "build_raw_request",
    "json_envelope",
    "lead_error_response",
    "lead_intake_error_handler",
]
