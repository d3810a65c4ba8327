from __future__ import annotations

from typing import Any, Generic, TypeVar
from uuid import uuid4

from fastapi import Request
from pydantic import BaseModel, Field


API_VERSION = "v1"

T = TypeVar("T")


class ResponseMeta(BaseModel):
    # Request and version metadata attached to every envelope.
    request_id: str
    api_version: str = Field(default=API_VERSION)


class ErrorDetail(BaseModel):
    # Stable error code plus a human-readable message and optional details.
    code: str
    message: str
    details: dict[str, Any] | None = None


class SuccessEnvelope(BaseModel, Generic[T]):
    # Wrap successful responses in a consistent envelope.
    data: T
    meta: ResponseMeta


class ErrorEnvelope(BaseModel):
    # Wrap error responses in a consistent envelope.
    error: ErrorDetail
    meta: ResponseMeta


class Page(BaseModel, Generic[T]):
    # Offset pagination; has_more is true whenever the page came back full.
    items: list[T]
    has_more: bool

    @classmethod
    def from_items(cls, items: list[T], *, limit: int) -> "Page[T]":
        return cls(items=items, has_more=len(items) == limit)


def get_request_id(request: Request) -> str:
    # The middleware stores the id first; fall back for handlers that run outside it.
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
    return request_id


def is_versioned_request(request: Request) -> bool:
    # Only /v1 routes get the standardized envelope.
    return request.url.path.startswith(f"/{API_VERSION}")


def _meta(request: Request) -> dict[str, Any]:
    # Build the shared meta block for success and error envelopes.
    return ResponseMeta(request_id=get_request_id(request)).model_dump()


def success_response(*, request: Request, data: Any) -> dict[str, Any]:
    # Models are dumped by alias so camelCase wire names (deploymentId, ...) survive.
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    if not is_versioned_request(request):
        return data
    return {"data": data, "meta": _meta(request)}


def error_response(
    *,
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    # Return the standard error envelope with request metadata.
    error = ErrorDetail(code=code, message=message, details=details)
    return {"error": error.model_dump(exclude_none=True), "meta": _meta(request)}
