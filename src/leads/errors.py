"""
Lead intake errors.

Every error that reaches the HTTP boundary derives from LeadIntakeError and
knows its status code and JSON envelope. Body-decode and geolocation
failures are absorbed inside the pipeline and never appear here.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class LeadIntakeError(Exception):
    """Base exception for lead intake errors."""

    status_code = 500
    where = "internal"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ok": False,
            "where": self.where,
            "error": self.message,
        }
        payload.update(self.details)
        return payload


class EmptyPayloadError(LeadIntakeError):
    """Nothing usable was recovered from the request body."""

    status_code = 400
    where = "empty_payload"

    def __init__(self, received_keys: Optional[List[str]] = None, message: str = "Empty payload"):
        super().__init__(message, {"received_keys": sorted(received_keys or [])})


class LeadValidationError(LeadIntakeError):
    """Normalized values failed validation."""

    status_code = 400
    where = "validation"

    def __init__(
        self,
        issues: List[Dict[str, Any]],
        received_keys: Optional[List[str]] = None,
        message: str = "Invalid lead data",
    ):
        self.issues = issues
        super().__init__(
            message,
            {"issues": issues, "received_keys": sorted(received_keys or [])},
        )


class ConfigurationError(LeadIntakeError):
    """Server is missing storage configuration."""

    status_code = 500
    where = "config"

    def __init__(self, message: str = "Server not configured"):
        super().__init__(message)


class StorageError(LeadIntakeError):
    """
    The storage collaborator rejected the request.

    Carries the collaborator's structured error unchanged.
    """

    status_code = 500
    where = "supabase"

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        hint: Optional[str] = None,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        self.error_details = details
        self.hint = hint
        self.code = code
        self.http_status = http_status
        super().__init__(message)

    @property
    def supabase_error(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "details": self.error_details,
            "hint": self.hint,
            "code": self.code,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "where": self.where,
            "error": self.message,
            "supabase_error": self.supabase_error,
        }
