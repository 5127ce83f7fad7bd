"""
SKMS Exception Hierarchy

Workflow functions raise these; the HTTP layer turns them into a structured
JSON body and status code (see ``SKMS.main``). Every error carries a
machine-readable ``error_code`` and an HTTP ``status_code`` so callers can
branch on the kind without parsing the message.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class SKMSError(Exception):
    """
    Base exception class for all operational SKMS errors.

    Attributes
    ----------
    message : str
        Human-readable error message, shown to the caller verbatim
    error_code : str
        Machine-readable error code for categorization
    status_code : int
        HTTP status the API boundary responds with
    context : Dict[str, Any]
        Additional error context (ids involved, current state, ...)
    timestamp : datetime
        When the error occurred
    """

    error_code: str = "skms_error"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.context = dict(context or {})
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"

    def to_dict(self) -> Dict[str, Any]:
        """Structured error data for logging."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "status_code": self.status_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
            "exception_type": self.__class__.__name__,
        }

    def to_response(self) -> Dict[str, Any]:
        """Body returned to API callers."""
        return {
            "status": self.status,
            "errorCode": self.error_code,
            "message": self.message,
        }


class NotFound(SKMSError):
    error_code = "not_found"
    status_code = 404


class Unauthorized(SKMSError):
    error_code = "unauthorized"
    status_code = 401


class Forbidden(SKMSError):
    error_code = "forbidden"
    status_code = 403


class NotEnrolled(Forbidden):
    error_code = "not_enrolled"


class InvalidState(SKMSError):
    error_code = "invalid_state"
    status_code = 400


class ValidationError(SKMSError):
    error_code = "validation_error"
    status_code = 400


# --- idempotency violations -------------------------------------------------

class AlreadyEnrolled(SKMSError):
    error_code = "already_enrolled"
    status_code = 409


class AlreadySubmitted(SKMSError):
    error_code = "already_submitted"
    status_code = 409


class DuplicateAttendance(SKMSError):
    error_code = "duplicate_attendance"
    status_code = 409


class DuplicateFeedback(SKMSError):
    error_code = "duplicate_feedback"
    status_code = 409


# --- availability / eligibility ---------------------------------------------

class NotAvailable(SKMSError):
    error_code = "not_available"
    status_code = 400


class NotActive(SKMSError):
    error_code = "not_active"
    status_code = 400


class TypeMismatch(SKMSError):
    error_code = "type_mismatch"
    status_code = 403


class LimitReached(SKMSError):
    error_code = "limit_reached"
    status_code = 409


class CapacityExceeded(SKMSError):
    error_code = "capacity_exceeded"
    status_code = 409


__all__ = [
    "SKMSError",
    "NotFound",
    "Unauthorized",
    "Forbidden",
    "NotEnrolled",
    "InvalidState",
    "ValidationError",
    "AlreadyEnrolled",
    "AlreadySubmitted",
    "DuplicateAttendance",
    "DuplicateFeedback",
    "NotAvailable",
    "NotActive",
    "TypeMismatch",
    "LimitReached",
    "CapacityExceeded",
]
