from __future__ import annotations

from typing import Any, Generic, TypeVar
from uuid import uuid4

from fastapi import Request
from pydantic import BaseModel


API_VERSION = "v1"

DataT = TypeVar("DataT")


class ResponseMeta(BaseModel):
    request_id: str
    api_version: str = API_VERSION


class PageInfo(BaseModel):
    offset: int
    limit: int
    returned: int
    # True when a full page came back; callers fetch the next offset to check for more.
    may_have_more: bool


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class SuccessEnvelope(BaseModel, Generic[DataT]):
    data: DataT
    meta: ResponseMeta


class ErrorEnvelope(BaseModel):
    error: ErrorBody
    meta: ResponseMeta


def request_id_for(request: Request) -> str:
    # The middleware stamps request.state; handlers that run outside it fall back to the header.
    current = getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id")
    if not current:
        current = str(uuid4())
    request.state.request_id = current
    return current


def _meta(request: Request, **extra: Any) -> dict[str, Any]:
    meta = ResponseMeta(request_id=request_id_for(request)).model_dump()
    meta.update(extra)
    return meta


def success_response(*, request: Request, data: Any) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return {"data": data, "meta": _meta(request)}


def page_response(
    *,
    request: Request,
    items: list[dict[str, Any]],
    offset: int,
    limit: int,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    page = PageInfo(offset=offset, limit=limit, returned=len(items), may_have_more=len(items) >= limit)
    data: dict[str, Any] = {"items": items}
    if extra:
        data.update(extra)
    return {"data": data, "meta": _meta(request, page=page.model_dump())}


def error_response(
    *,
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    body = ErrorBody(code=code, message=message, details=details or None)
    return {"error": body.model_dump(exclude_none=True), "meta": _meta(request)}
