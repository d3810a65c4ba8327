from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from deploytrack.apps.api.response import error_response, is_versioned_request
from deploytrack.core.errors import (
    ConfigurationError,
    DatabaseError,
    DeployTrackError,
    IdentityProviderError,
    InvalidActionError,
    MissingIdentifierError,
    NotFoundError,
    RecordNotFoundError,
    SheetsError,
)


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "UPSTREAM_ERROR",
    503: "SERVICE_UNAVAILABLE",
}

# Fallback translation for domain errors a route did not map itself; first match wins.
_DOMAIN_ERRORS: tuple[tuple[type[DeployTrackError], int, str], ...] = (
    (MissingIdentifierError, 400, "DEPLOYMENT_ID_REQUIRED"),
    (RecordNotFoundError, 404, "DEPLOYMENT_NOT_FOUND"),
    (SheetsError, 502, "SHEETS_UNAVAILABLE"),
    (IdentityProviderError, 502, "IDENTITY_PROVIDER_ERROR"),
    (NotFoundError, 404, "NOT_FOUND"),
    (InvalidActionError, 400, "INVALID_ACTION"),
    (ConfigurationError, 503, "SERVICE_UNAVAILABLE"),
    (DatabaseError, 500, "DATABASE_ERROR"),
)


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # Routes raise HTTPException(detail={"code", "message", ...}); plain strings get a default code.
    fallback_code = _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")
    if isinstance(detail, dict):
        code = str(detail.get("code") or fallback_code)
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return fallback_code, detail, None
    return fallback_code, "Request failed", None


def _envelope(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Normalize HTTP errors into the shared error envelope for v1 routes.
    if not is_versioned_request(request):
        return JSONResponse(content={"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)
    code, message, details = _split_detail(exc.detail, exc.status_code)
    return _envelope(
        request,
        status_code=exc.status_code,
        code=code,
        message=message,
        details=details,
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Surface request validation failures with field-level details.
    if not is_versioned_request(request):
        return JSONResponse(content={"detail": exc.errors()}, status_code=422)
    return _envelope(
        request,
        status_code=422,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": exc.errors()},
    )


async def domain_exception_handler(request: Request, exc: DeployTrackError) -> JSONResponse:
    # Translate domain errors that escaped a route into their HTTP status.
    for error_cls, status_code, code in _DOMAIN_ERRORS:
        if isinstance(exc, error_cls):
            break
    else:
        status_code, code = 500, "INTERNAL_ERROR"
    logger.warning(
        "domain_error_unmapped path=%s error=%s status=%s",
        request.url.path,
        type(exc).__name__,
        status_code,
        exc_info=exc,
    )
    return _envelope(request, status_code=status_code, code=code, message=str(exc) or code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Never leak stack traces to clients.
    logger.error("unhandled_exception path=%s", request.url.path, exc_info=exc)
    if not is_versioned_request(request):
        return JSONResponse(content={"detail": "Internal Server Error"}, status_code=500)
    return _envelope(request, status_code=500, code="INTERNAL_ERROR", message="Internal server error")


def api_error(status_code: int, code: str, message: str) -> HTTPException:
    # Routes raise this; http_exception_handler unpacks the code and message.
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})
