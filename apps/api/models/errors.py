"""Error taxonomy and standardized error payloads.

Services raise one of three exceptions:

- InvalidInput: the caller sent something missing or malformed
- NotFound: a referenced project, decision or recording does not exist
- ServiceUnavailable: the AI provider is not configured or a call to it failed

Every AppError renders to the same payload an HTTP layer can return as-is:

{
    "error": "ValidationError",
    "message": "Search query is required",
    "details": {"field": "query"},
    "request_id": "abc-123-def-456",
    "timestamp": "2026-01-29T12:00:00Z",
    "path": "/api/search"
}
"""

from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils.logging import get_request_id


class ErrorResponse(BaseModel):
    """Standard error response schema.

    Attributes:
        error: Error type/code (e.g., "ValidationError", "NotFound", "ServiceUnavailable")
        message: Human-readable error message suitable for display to users
        details: Optional additional context about the error
        request_id: Optional request correlation ID for tracing
        timestamp: When the error occurred (ISO 8601 format)
        path: Optional request path that caused the error
    """

    error: str = Field(
        ...,
        description="Error type/code (e.g., 'ValidationError', 'NotFound')",
        examples=["ValidationError", "NotFound", "ServiceUnavailable"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Project not found"],
    )
    details: Optional[dict[str, Any]] = Field(
        default=None,
        description="Additional error context",
        examples=[{"field": "query"}],
    )
    request_id: Optional[str] = Field(
        default=None,
        description="Request correlation ID for tracing",
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="When the error occurred (ISO 8601)",
    )
    path: Optional[str] = Field(
        default=None,
        description="Request path that caused the error",
        examples=["/api/search"],
    )


class ErrorType:
    """Standard error type codes."""

    VALIDATION_ERROR = "ValidationError"
    NOT_FOUND = "NotFound"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    INTERNAL_ERROR = "InternalError"


def create_error_response(
    error: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
    request_id: Optional[str] = None,
    path: Optional[str] = None,
) -> dict[str, Any]:
    """Create a standardized error response dictionary.

    Args:
        error: Error type code (use ErrorType constants)
        message: Human-readable error message
        details: Optional additional error context
        request_id: Optional request correlation ID
        path: Optional request path

    Returns:
        Dictionary suitable for a JSON response body
    """
    response = ErrorResponse(
        error=error,
        message=message,
        details=details,
        request_id=request_id,
        path=path,
    )
    return response.model_dump(exclude_none=True)


class AppError(Exception):
    """Base class for errors surfaced to callers of the service layer."""

    error_type: str = ErrorType.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_response(
        self,
        request_id: Optional[str] = None,
        path: Optional[str] = None,
    ) -> dict[str, Any]:
        """Render this error as a standard error payload.

        The request id defaults to the one bound to the current log context.
        """
        return create_error_response(
            error=self.error_type,
            message=self.message,
            details=self.details,
            request_id=request_id or get_request_id(),
            path=path,
        )


class InvalidInput(AppError):
    """The request is missing a required field or has the wrong shape."""

    error_type = ErrorType.VALIDATION_ERROR
    status_code = 400


class NotFound(AppError):
    """A referenced project, decision or recording does not exist."""

    error_type = ErrorType.NOT_FOUND
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} not found",
            details={"resource": resource, "id": resource_id},
        )


class ServiceUnavailable(AppError):
    """The AI provider is not configured or a call to it failed."""

    error_type = ErrorType.SERVICE_UNAVAILABLE
    status_code = 503
