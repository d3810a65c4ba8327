from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from deploytrack.apps.api.deps import Principal, get_db, get_identity_provider, require_role
from deploytrack.apps.api.errors import api_error
from deploytrack.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from deploytrack.apps.api.response import SuccessEnvelope, success_response
from deploytrack.core.errors import DatabaseError, IdentityProviderError, NotFoundError
from deploytrack.providers.identity.base import IdentityProvider
from deploytrack.services.accounts import AccountChangeResult, UserAccountAdmin


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/users", tags=["admin"], responses=DEFAULT_ERROR_RESPONSES)


class AccountResponse(BaseModel):
    user_id: str
    email: str
    name: str
    role: str
    created_at: str | None = None


class AccountCreateRequest(BaseModel):
    email: str = ""
    password: str = ""
    name: str = ""
    role: str | None = None


class AccountCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    user_id: str = Field(alias="userId")
    role: str


class AccountUpdateRequest(BaseModel):
    email: str | None = None
    name: str | None = None
    role: str | None = None


class AccountChangeResponse(BaseModel):
    success: bool
    message: str
    partial: bool = False
    error: str | None = None
    user: AccountResponse | None = None


class PasswordResetRequest(BaseModel):
    new_password: str = Field(default="", alias="newPassword")

    model_config = ConfigDict(populate_by_name=True)


class MessageResponse(BaseModel):
    message: str


def _admin(db: AsyncSession, identity: IdentityProvider) -> UserAccountAdmin:
    return UserAccountAdmin(db, identity)


def _identity_error(exc: IdentityProviderError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"code": "IDENTITY_PROVIDER_ERROR", "message": str(exc)},
    )


def _change_response(result: AccountChangeResult) -> AccountChangeResponse:
    return AccountChangeResponse(
        success=True,
        message=result.message,
        partial=result.partial,
        error=result.error,
        user=AccountResponse(**result.account) if result.account else None,
    )


@router.get("", response_model=SuccessEnvelope[list[AccountResponse]] | list[AccountResponse])
async def list_users(
    request: Request,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    _ = principal
    try:
        accounts = await _admin(db, identity).list_accounts()
    except DatabaseError as exc:
        raise api_error(500, "DATABASE_ERROR", str(exc)) from exc
    payload = [AccountResponse(**account.snapshot()).model_dump() for account in accounts]
    return success_response(request=request, data=payload)


@router.post("", response_model=SuccessEnvelope[AccountCreateResponse] | AccountCreateResponse)
async def create_user(
    request: Request,
    payload: AccountCreateRequest,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    try:
        account = await _admin(db, identity).create_account(
            email=payload.email,
            password=payload.password,
            name=payload.name,
            role=payload.role,
            actor=principal.actor(),
        )
    except ValueError as exc:
        raise api_error(400, "MISSING_FIELDS", str(exc)) from exc
    except IdentityProviderError as exc:
        logger.warning("admin_user_create_identity_failed email=%s", payload.email, exc_info=exc)
        raise _identity_error(exc) from exc
    except DatabaseError as exc:
        raise api_error(500, "DATABASE_ERROR", str(exc)) from exc
    response = AccountCreateResponse(
        message="User created successfully",
        user_id=account["user_id"],
        role=account["role"],
    )
    return success_response(request=request, data=response)


@router.put("/{user_id}", response_model=SuccessEnvelope[AccountChangeResponse] | AccountChangeResponse)
async def update_user(
    user_id: str,
    request: Request,
    payload: AccountUpdateRequest,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    try:
        result = await _admin(db, identity).update_account(
            user_id,
            email=payload.email,
            name=payload.name,
            role=payload.role,
            actor=principal.actor(),
        )
    except NotFoundError as exc:
        raise api_error(404, "USER_NOT_FOUND", str(exc)) from exc
    except ValueError as exc:
        raise api_error(400, "INVALID_ROLE", str(exc)) from exc
    except DatabaseError as exc:
        raise api_error(500, "DATABASE_ERROR", str(exc)) from exc
    return success_response(request=request, data=_change_response(result))


@router.delete("/{user_id}", response_model=SuccessEnvelope[AccountChangeResponse] | AccountChangeResponse)
async def delete_user(
    user_id: str,
    request: Request,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    try:
        result = await _admin(db, identity).delete_account(user_id, actor=principal.actor())
    except NotFoundError as exc:
        raise api_error(404, "USER_NOT_FOUND", str(exc)) from exc
    except IdentityProviderError as exc:
        raise _identity_error(exc) from exc
    except DatabaseError as exc:
        raise api_error(500, "DATABASE_ERROR", str(exc)) from exc
    return success_response(request=request, data=_change_response(result))


@router.post("/{user_id}/password", response_model=SuccessEnvelope[MessageResponse] | MessageResponse)
async def reset_user_password(
    user_id: str,
    request: Request,
    payload: PasswordResetRequest,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> dict[str, Any]:
    try:
        await _admin(db, identity).reset_password(user_id, payload.new_password, actor=principal.actor())
    except ValueError as exc:
        raise api_error(400, "INVALID_PASSWORD", str(exc)) from exc
    except IdentityProviderError as exc:
        if exc.status_code == 404:
            raise api_error(404, "USER_NOT_FOUND", str(exc)) from exc
        raise _identity_error(exc) from exc
    return success_response(request=request, data=MessageResponse(message="Password updated successfully"))
