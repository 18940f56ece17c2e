"""
Shared error handling for the CEP Geocoding Service.
"""

from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import get_request_id


class ErrorResponse(BaseModel):
    """Standard error payload."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ApiResponse(BaseModel):
    """Envelope wrapping every HTTP response body."""

    success: bool
    data: Optional[Any] = None
    error: Optional[ErrorResponse] = None
    timestamp: str


def success_response(data: Any) -> Dict[str, Any]:
    """Wrap a payload in the success envelope."""
    return ApiResponse(
        success=True,
        data=data,
        timestamp=datetime.now(timezone.utc).isoformat()
    ).model_dump(mode="json", exclude_none=True)


def error_response(error: ErrorResponse) -> Dict[str, Any]:
    """Wrap an error in the failure envelope."""
    return ApiResponse(
        success=False,
        error=error,
        timestamp=datetime.now(timezone.utc).isoformat()
    ).model_dump(mode="json", exclude_none=True)


class GeoServiceException(Exception):
    """Base exception for the geocoding service."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=get_request_id(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class InvalidInputError(GeoServiceException):
    """Malformed postal code, coordinates or request body. Raised before any I/O."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", code: str = "VALIDATION_ERROR",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class NotFoundError(GeoServiceException):
    """Postal code does not exist upstream, or an API key is unknown."""

    status_code = 404

    def __init__(self, message: str = "CEP not found", code: str = "CEP_NOT_FOUND",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class UnavailableError(GeoServiceException):
    """Upstream provider unreachable after exhausting retries."""

    status_code = 503

    def __init__(self, service: str, message: str = "External service temporarily unavailable",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_UNAVAILABLE", f"{service}: {message}", details)


class UnauthorizedError(GeoServiceException):
    """Missing, invalid, expired or revoked API key."""

    status_code = 401

    def __init__(self, message: str = "Authentication required", code: str = "UNAUTHORIZED",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class ForbiddenError(GeoServiceException):
    """Valid key lacking the required permission."""

    status_code = 403

    def __init__(self, message: str = "Access forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__("FORBIDDEN", message, details)


class QuotaExceededError(GeoServiceException):
    """Daily request quota reached."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__("RATE_LIMIT_EXCEEDED", message, details)


class InternalError(GeoServiceException):
    """Catch-all for failures outside the known taxonomy."""

    status_code = 500

    def __init__(self, message: str = "Internal server error", details: Optional[Dict[str, Any]] = None):
        super().__init__("INTERNAL_ERROR", message, details)
