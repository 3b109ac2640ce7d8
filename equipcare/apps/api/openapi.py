from __future__ import annotations

from typing import Any

from equipcare.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _response(description: str, example: dict[str, Any]) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": example}},
    }


DEFAULT_ERROR_RESPONSES: dict[int, dict[str, Any]] = {
    401: _response(
        "Unauthorized",
        _error_example(code="AUTH_UNAUTHORIZED", message="X-Role header is required"),
    ),
    403: _response(
        "Forbidden",
        _error_example(code="AUTH_FORBIDDEN", message="Insufficient role for this operation"),
    ),
    404: _response(
        "Not found",
        _error_example(
            code="NOT_FOUND",
            message="maintenance_ticket abc not found",
            details={"entity_type": "maintenance_ticket", "entity_id": "abc"},
        ),
    ),
    409: _response(
        "Conflict",
        _error_example(
            code="DELETE_BLOCKED",
            message="Cannot delete vendor: it still has 1 active client.",
            details={
                "entity_type": "vendor",
                "entity_id": "v1",
                "can_delete": False,
                "counts": {"clients_count": 1, "equipment_count": 0, "assignments_count": 0, "active_tickets_count": 0},
            },
        ),
    ),
    422: _response(
        "Validation error",
        _error_example(
            code="VALIDATION_ERROR",
            message="actual_hours must be greater than 0 and at most 100",
            details={"field": "actual_hours"},
        ),
    ),
    500: _response(
        "Internal error",
        _error_example(code="INTERNAL_ERROR", message="Internal server error"),
    ),
}
