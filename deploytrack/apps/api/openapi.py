from __future__ import annotations

from typing import Any

from deploytrack.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    return {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }


def _error_response(description: str, code: str, message: str) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": _error_example(code=code, message=message)}},
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: _error_response("Bad request", "BAD_REQUEST", "Bad request"),
    401: _error_response("Unauthorized", "AUTH_UNAUTHORIZED", "Missing or invalid bearer token"),
    403: _error_response("Forbidden", "AUTH_FORBIDDEN", "Insufficient role for this operation"),
    404: _error_response("Not found", "NOT_FOUND", "Resource not found"),
    422: _error_response("Validation error", "REQUEST_VALIDATION_ERROR", "Validation error"),
    500: _error_response("Internal error", "INTERNAL_ERROR", "Internal server error"),
    502: _error_response("Upstream failure", "SHEETS_UNAVAILABLE", "Failed to fetch deployments"),
}
