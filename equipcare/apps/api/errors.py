from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from equipcare.apps.api.response import error_response
from equipcare.core.errors import (
    ConstraintViolation,
    EquipCareError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)


logger = logging.getLogger(__name__)

_STATUS_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}

# Checked in order; the first matching type decides status and code.
_DOMAIN_ERRORS: tuple[tuple[type[EquipCareError], int, str], ...] = (
    (ValidationError, 422, "VALIDATION_ERROR"),
    (InvalidStateTransition, 409, "INVALID_STATE_TRANSITION"),
    (ConstraintViolation, 409, "DELETE_BLOCKED"),
    (NotFoundError, 404, "NOT_FOUND"),
)


def _json(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=jsonable_encoder(payload), status_code=status_code, headers=headers)


def split_http_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    """Read ``code``/``message`` from an HTTPException detail; other dict keys become details."""
    fallback = _STATUS_CODES.get(status_code, "UNKNOWN_ERROR")
    if isinstance(detail, str):
        return fallback, detail, None
    if not isinstance(detail, dict):
        return fallback, "Request failed", None
    extra = {key: value for key, value in detail.items() if key not in ("code", "message")}
    return str(detail.get("code") or fallback), str(detail.get("message") or "Request failed"), extra or None


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code, message, details = split_http_detail(exc.detail, exc.status_code)
    return _json(
        request,
        status_code=exc.status_code,
        code=code,
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Body/query schema failures; domain range checks surface as VALIDATION_ERROR instead.
    return _json(
        request,
        status_code=422,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": exc.errors()},
    )


async def domain_exception_handler(request: Request, exc: EquipCareError) -> JSONResponse:
    for error_type, status_code, code in _DOMAIN_ERRORS:
        if isinstance(exc, error_type):
            return _json(
                request,
                status_code=status_code,
                code=code,
                message=str(exc),
                details=exc.to_details() or None,
            )
    logger.error("unmapped domain error on %s: %s", request.url.path, exc)
    return _json(request, status_code=500, code="INTERNAL_ERROR", message="Internal server error")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s", request.url.path, exc_info=exc)
    return _json(request, status_code=500, code="INTERNAL_ERROR", message="Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    # FastAPI's HTTPException subclasses Starlette's, so one handler covers both.
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(EquipCareError, domain_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
