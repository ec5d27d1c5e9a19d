"""
Shared error handling for the Collection Browser.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class BrowserException(Exception):
    """Base exception for Collection Browser services."""

    status_code: int = 400

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


class ConfigurationError(BrowserException):
    """Required external setup is missing (e.g. an API key)."""

    status_code = 500

    def __init__(self, message: str = "Service is not configured", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class ValidationError(BrowserException):
    """Validation-related errors."""

    status_code = 422

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class MissingNextTokenError(BrowserException):
    """Next page requested but the session holds no next-page token."""

    status_code = 400

    def __init__(self, message: str = "Continuation token was not found in cache", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISSING_NEXT_TOKEN", message, details)


class EncodingError(BrowserException):
    """A cached value or continuation token cannot be decoded."""

    status_code = 500

    def __init__(self, message: str = "Cached value could not be decoded", details: Optional[Dict[str, Any]] = None):
        super().__init__("ENCODING_ERROR", message, details)


class ExternalServiceError(BrowserException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)


class RemoteFetchError(ExternalServiceError):
    """The remote listing service failed to return a page."""

    def __init__(self, service: str, message: str = "Page fetch failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(service, message, details)
        self.code = "REMOTE_FETCH_ERROR"
