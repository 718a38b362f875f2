"""Tests for the error taxonomy and error payloads."""

from models.errors import (
    AppError,
    ErrorType,
    InvalidInput,
    NotFound,
    ServiceUnavailable,
    create_error_response,
)
from utils.logging import LogContext


class TestErrorTypes:
    def test_invalid_input(self):
        error = InvalidInput("Search query is required", details={"field": "query"})
        assert isinstance(error, AppError)
        assert error.status_code == 400
        assert error.error_type == ErrorType.VALIDATION_ERROR
        assert str(error) == "Search query is required"

    def test_not_found(self):
        error = NotFound("Project", 42)
        assert error.status_code == 404
        assert error.message == "Project not found"
        assert error.details == {"resource": "Project", "id": 42}

    def test_service_unavailable(self):
        error = ServiceUnavailable("Embedding provider request failed")
        assert error.status_code == 503
        assert error.error_type == ErrorType.SERVICE_UNAVAILABLE


class TestErrorResponse:
    def test_to_response(self):
        payload = InvalidInput("Search query is required", details={"field": "query"}).to_response(
            request_id="req-1", path="/api/search"
        )

        assert payload["error"] == "ValidationError"
        assert payload["message"] == "Search query is required"
        assert payload["details"] == {"field": "query"}
        assert payload["request_id"] == "req-1"
        assert payload["path"] == "/api/search"
        assert "timestamp" in payload

    def test_omits_empty_fields(self):
        payload = create_error_response(ErrorType.INTERNAL_ERROR, "Something broke")

        assert set(payload) == {"error", "message", "timestamp"}

    def test_request_id_from_log_context(self):
        with LogContext(request_id="req-ctx"):
            payload = NotFound("Project", 42).to_response()

        assert payload["request_id"] == "req-ctx"
        assert "request_id" not in NotFound("Project", 42).to_response()

    def test_explicit_request_id_wins(self):
        with LogContext(request_id="req-ctx"):
            payload = NotFound("Project", 42).to_response(request_id="req-arg")

        assert payload["request_id"] == "req-arg"
