from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from deploytrack.apps.api.deps import Principal, get_db, get_identity_provider, require_role
from deploytrack.apps.api.errors import api_error
from deploytrack.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from deploytrack.apps.api.response import Page, SuccessEnvelope, success_response
from deploytrack.core.config import get_settings
from deploytrack.core.errors import DatabaseError, IdentityProviderError, InvalidActionError, NotFoundError
from deploytrack.domain.models import UserActionHistory
from deploytrack.providers.identity.base import IdentityProvider
from deploytrack.services.accounts import UserAccountAdmin
from deploytrack.services.user_history import AuditLogStore


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/history", tags=["admin"], responses=DEFAULT_ERROR_RESPONSES)


class HistoryEntryResponse(BaseModel):
    id: int
    action_type: str
    performed_by: str | None
    performed_by_email: str | None
    target_user_id: str | None
    target_user_email: str | None
    previous_data: dict[str, Any] | None
    new_data: dict[str, Any] | None
    timestamp: str


class LogActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action_type: str = Field(default="", alias="actionType")
    target_user_id: str | None = Field(default=None, alias="targetUserId")
    target_user_email: str = Field(default="", alias="targetUserEmail")
    previous_data: dict[str, Any] | None = Field(default=None, alias="previousData")
    new_data: dict[str, Any] | None = Field(default=None, alias="newData")


class RestoreRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    history_id: int | None = Field(default=None, alias="historyId")


class RestoreResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    new_account_id: str = Field(alias="newAccountId")
    email: str
    needs_password_reset: bool = Field(alias="needsPasswordReset")


def _to_response(entry: UserActionHistory) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=entry.id,
        action_type=entry.action_type,
        performed_by=entry.performed_by,
        performed_by_email=entry.performed_by_email,
        target_user_id=entry.target_user_id,
        target_user_email=entry.target_user_email,
        previous_data=entry.previous_data,
        new_data=entry.new_data,
        timestamp=entry.timestamp.isoformat(),
    )


@router.get("", response_model=SuccessEnvelope[Page[HistoryEntryResponse]] | Page[HistoryEntryResponse])
async def list_history(
    request: Request,
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    action_type: str | None = Query(default=None),
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    _ = principal
    settings = get_settings()
    page_size = min(limit or settings.history_default_page_size, settings.history_max_page_size)
    try:
        entries = await AuditLogStore(db).list_entries(action_type=action_type, limit=page_size, offset=offset)
    except DatabaseError as exc:
        logger.error("user_history_list_failed", exc_info=exc)
        raise api_error(500, "DATABASE_ERROR", str(exc)) from exc
    page = Page.from_items([_to_response(entry) for entry in entries], limit=page_size)
    return success_response(request=request, data=page)


@router.post("", response_model=SuccessEnvelope[HistoryEntryResponse] | HistoryEntryResponse)
async def log_action(
    request: Request,
    payload: LogActionRequest,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    try:
        entry = await UserAccountAdmin(db, identity).log_action(
            action_type=payload.action_type,
            actor=principal.actor(),
            target_user_id=payload.target_user_id,
            target_user_email=payload.target_user_email,
            previous_data=payload.previous_data or {},
            new_data=payload.new_data or {},
        )
    except ValueError as exc:
        raise api_error(400, "MISSING_FIELDS", str(exc)) from exc
    except DatabaseError as exc:
        raise api_error(500, "DATABASE_ERROR", "Failed to log action") from exc
    return success_response(request=request, data=_to_response(entry))


@router.post("/restore", response_model=SuccessEnvelope[RestoreResponse] | RestoreResponse)
async def restore_user(
    request: Request,
    payload: RestoreRequest,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    if not payload.history_id:
        raise api_error(400, "MISSING_FIELDS", "Missing historyId")
    try:
        result = await AuditLogStore(db, identity).restore(payload.history_id, actor=principal.actor())
    except NotFoundError as exc:
        raise api_error(404, "HISTORY_NOT_FOUND", str(exc)) from exc
    except InvalidActionError as exc:
        raise api_error(400, "INVALID_HISTORY_ACTION", str(exc)) from exc
    except IdentityProviderError as exc:
        logger.warning("user_restore_identity_failed history_id=%s", payload.history_id, exc_info=exc)
        raise api_error(502, "IDENTITY_PROVIDER_ERROR", f"Failed to restore user in auth system: {exc}") from exc
    except DatabaseError as exc:
        raise api_error(500, "DATABASE_ERROR", str(exc)) from exc
    response = RestoreResponse(
        message="User restored successfully. They will need to reset their password.",
        new_account_id=result.new_account_id,
        email=result.email,
        needs_password_reset=result.needs_password_reset,
    )
    return success_response(request=request, data=response)
