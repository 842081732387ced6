"""
Shared error handling for the Symptom Tracker services.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class SymptomTrackerException(Exception):
    """Base exception for Symptom Tracker services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class StoreError(SymptomTrackerException):
    """Backing store query or connection failure.

    Surfaced to the caller unchanged. Never retried and never cached.
    """

    status_code = 503

    def __init__(self, message: str = "Store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_ERROR", message, details)


class NotFoundError(SymptomTrackerException):
    """An identity-scoped query matched zero rows."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class CacheError(SymptomTrackerException):
    """Cache unavailable or a cache command failed.

    Callers of the cache treat this as a miss; it never fails a logical
    operation.
    """

    status_code = 503

    def __init__(self, message: str = "Cache error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_ERROR", message, details)


class ExternalServiceError(SymptomTrackerException):
    """External service errors."""

    status_code = 502

    def __init__(
        self,
        service: str,
        message: str = "External service error",
        details: Optional[Dict[str, Any]] = None,
        code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        super().__init__(code, f"{service}: {message}", details)


class InsightError(ExternalServiceError):
    """The insight text provider failed or is not configured."""

    def __init__(self, message: str = "Insight generation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("insight", message, details, code="INSIGHT_ERROR")
