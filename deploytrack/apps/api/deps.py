from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from deploytrack.core.config import get_settings
from deploytrack.core.errors import ConfigurationError
from deploytrack.domain.models import Account, ApiKey
from deploytrack.persistence.db import SessionLocal, get_session
from deploytrack.providers.identity.base import IdentityProvider
from deploytrack.providers.identity.factory import get_identity_provider as build_identity_provider
from deploytrack.services.auth.api_keys import hash_api_key, key_id_from_token, normalize_role, role_allows
from deploytrack.services.deployments.factory import build_deployment_store
from deploytrack.services.deployments.store import DeploymentRecordStore
from deploytrack.services.user_history import Actor


logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


class Principal(BaseModel):
    # Capture the authenticated identity used for RBAC and history attribution.
    subject_id: str
    email: str | None = None
    role: str
    api_key_id: str
    auth_method: str = "api_key"

    def actor(self) -> Actor:
        return Actor(user_id=self.subject_id, email=self.email)


def _auth_error(message: str) -> HTTPException:
    # Normalize auth errors for clients without leaking internal details.
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "AUTH_UNAUTHORIZED", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden_error(message: str) -> HTTPException:
    # Authenticated but below the required role.
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"code": "AUTH_FORBIDDEN", "message": message},
    )


def _unavailable_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"code": "SERVICE_UNAVAILABLE", "message": message},
    )


def _parse_bearer_token(header_value: str | None) -> str | None:
    # Accept only "Bearer <token>" authorization headers.
    if not header_value:
        return None
    parts = header_value.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _auth_error("Missing or invalid bearer token")
    return parts[1]


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _principal_from_dev_headers(request: Request) -> Principal:
    # Allow identity headers only when explicitly enabled for local dev.
    user_id = request.headers.get("X-User-Id") or "dev-user"
    role_header = request.headers.get("X-Role", "admin")
    try:
        role = normalize_role(role_header)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "AUTH_INVALID_ROLE", "message": str(exc)},
        ) from exc
    return Principal(
        subject_id=user_id,
        email=request.headers.get("X-User-Email"),
        role=role,
        api_key_id="dev-bypass",
        auth_method="dev_bypass",
    )


async def _touch_last_used(api_key_id: str) -> None:
    # Update last_used_at without affecting the request transaction.
    async with SessionLocal() as session:
        try:
            await session.execute(
                update(ApiKey)
                .where(ApiKey.id == api_key_id)
                .values(last_used_at=datetime.now(timezone.utc))
            )
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            logger.warning("api_key_touch_failed api_key_id=%s", api_key_id)


async def get_current_principal(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Principal:
    settings = get_settings()
    bearer_token = _parse_bearer_token(request.headers.get(settings.auth_api_key_header))

    if not settings.auth_enabled or not bearer_token:
        if settings.auth_dev_bypass:
            return _principal_from_dev_headers(request)
        logger.info("auth_failure reason=missing_api_key path=%s", request.url.path)
        if not settings.auth_enabled:
            raise _auth_error("Authentication disabled; set AUTH_DEV_BYPASS=true for dev access")
        raise _auth_error("Missing API key")

    try:
        result = await db.execute(
            select(ApiKey, Account)
            .join(Account, Account.user_id == ApiKey.user_id)
            .where(ApiKey.key_hash == hash_api_key(bearer_token))
        )
        row = result.first()
    except SQLAlchemyError as exc:
        logger.error("auth_lookup_failed path=%s", request.url.path, exc_info=exc)
        raise _unavailable_error("Authentication backend unavailable") from exc

    if row is None:
        logger.info(
            "auth_failure reason=unknown_key key_id=%s path=%s",
            key_id_from_token(bearer_token),
            request.url.path,
        )
        raise _auth_error("Invalid API key")
    api_key, account = row
    if api_key.revoked_at is not None:
        logger.info("auth_failure reason=revoked api_key_id=%s", api_key.id)
        raise _auth_error("API key revoked")
    if api_key.expires_at is not None and _as_utc(api_key.expires_at) <= datetime.now(timezone.utc):
        logger.info("auth_failure reason=expired api_key_id=%s", api_key.id)
        raise _auth_error("API key expired")

    await _touch_last_used(api_key.id)
    return Principal(
        subject_id=account.user_id,
        email=account.email,
        role=account.role,
        api_key_id=api_key.id,
    )


def require_role(minimum_role: str):
    # Dependency factory to enforce RBAC at the route level.
    async def _dependency(
        request: Request,
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if not role_allows(role=principal.role, minimum_role=minimum_role):
            logger.warning(
                "rbac_forbidden subject_id=%s role=%s required_role=%s path=%s",
                principal.subject_id,
                principal.role,
                minimum_role,
                request.url.path,
            )
            raise _forbidden_error("Insufficient role for this operation")
        return principal

    return _dependency


@lru_cache
def _shared_deployment_store() -> DeploymentRecordStore:
    # Share the backend's HTTP client across requests; sheet data itself is never cached.
    return build_deployment_store()


@lru_cache
def _shared_identity_provider() -> IdentityProvider:
    return build_identity_provider()


def get_deployment_store() -> DeploymentRecordStore:
    # Missing sheet configuration becomes a 503 instead of a crash.
    try:
        return _shared_deployment_store()
    except ConfigurationError as exc:
        logger.error("deployment_store_misconfigured", exc_info=exc)
        raise _unavailable_error("Deployment spreadsheet is not configured") from exc


def get_identity_provider() -> IdentityProvider:
    try:
        return _shared_identity_provider()
    except ConfigurationError as exc:
        logger.error("identity_provider_misconfigured", exc_info=exc)
        raise _unavailable_error("Identity provider is not configured") from exc
