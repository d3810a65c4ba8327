"""Append-only history of user-account actions, plus restore of deleted accounts.

Entries are never mutated after insert. A delete entry keeps the full
account snapshot in `previous_data`; restoring it creates a brand-new
identity-provider account for the same email and appends a separate
`restore` entry instead of touching the original.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import secrets
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from deploytrack.core.errors import DatabaseError, InvalidActionError, NotFoundError
from deploytrack.domain.models import UserActionHistory
from deploytrack.persistence.repos import accounts as accounts_repo
from deploytrack.persistence.repos import audit as audit_repo
from deploytrack.providers.identity.base import IdentityProvider
from deploytrack.services.auth.api_keys import ROLE_TECHNICIAN


logger = logging.getLogger(__name__)

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_RESTORE = "restore"
KNOWN_ACTION_TYPES = frozenset({ACTION_CREATE, ACTION_UPDATE, ACTION_DELETE, ACTION_RESTORE})

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass(frozen=True)
class Actor:
    user_id: str | None
    email: str | None


@dataclass(frozen=True)
class RestoreResult:
    new_account_id: str
    email: str
    needs_password_reset: bool = True


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_temporary_password() -> str:
    # One-time credential; the restored user must reset it immediately.
    first = _to_base36(secrets.randbits(52))
    second = _to_base36(secrets.randbits(52)).upper()
    return first + second


class AuditLogStore:
    def __init__(self, session: AsyncSession, identity: IdentityProvider | None = None) -> None:
        self._session = session
        self._identity = identity

    async def append(
        self,
        *,
        action_type: str,
        actor: Actor,
        target_user_id: str | None,
        target_user_email: str | None,
        previous_data: dict[str, Any] | None = None,
        new_data: dict[str, Any] | None = None,
    ) -> UserActionHistory:
        if action_type not in KNOWN_ACTION_TYPES:
            # Stored as-is; the column is free-form text.
            logger.warning("user_history_unknown_action action_type=%s", action_type)
        entry = UserActionHistory(
            action_type=action_type,
            performed_by=actor.user_id,
            performed_by_email=actor.email,
            target_user_id=target_user_id,
            target_user_email=target_user_email,
            previous_data=previous_data,
            new_data=new_data,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            await audit_repo.insert_entry(self._session, entry)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise DatabaseError("Failed to write user history entry") from exc
        return entry

    async def append_best_effort(self, **kwargs: Any) -> UserActionHistory | None:
        # History writes must never abort the account operation they describe.
        try:
            return await self.append(**kwargs)
        except DatabaseError as exc:
            logger.warning(
                "user_history_write_failed action_type=%s target_user_id=%s",
                kwargs.get("action_type"),
                kwargs.get("target_user_id"),
                exc_info=exc,
            )
            return None

    async def list_entries(
        self,
        *,
        action_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[UserActionHistory]:
        try:
            return await audit_repo.list_entries(
                self._session,
                action_type=action_type,
                offset=max(offset, 0),
                limit=max(limit, 1),
            )
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to fetch user history") from exc

    async def get(self, entry_id: int) -> UserActionHistory | None:
        try:
            return await audit_repo.get_entry_by_id(self._session, entry_id=entry_id)
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to fetch user history entry") from exc

    async def restore(self, entry_id: int, *, actor: Actor) -> RestoreResult:
        if self._identity is None:
            raise RuntimeError("restore requires an identity provider")
        entry = await self.get(entry_id)
        if entry is None:
            raise NotFoundError("History record not found")
        if entry.action_type != ACTION_DELETE:
            raise InvalidActionError("Can only restore deleted users")
        snapshot = dict(entry.previous_data or {})
        email = snapshot.get("email")
        if not email:
            raise InvalidActionError("History record has no account snapshot to restore")

        # IdentityProviderError propagates before anything is written locally.
        identity_user = await self._identity.create_user(
            email=email,
            password=generate_temporary_password(),
            email_confirm=True,
            user_metadata={
                "restored": True,
                "restored_by": actor.email,
                "restored_at": datetime.now(timezone.utc).isoformat(),
            },
        )

        name = snapshot.get("name") or ""
        role = snapshot.get("role") or ROLE_TECHNICIAN
        try:
            await accounts_repo.upsert_account_by_email(
                self._session,
                user_id=identity_user.id,
                email=email,
                name=name,
                role=role,
            )
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            # The identity account created above is left in place; no compensating delete.
            logger.error(
                "user_restore_db_failed history_id=%s identity_user_id=%s",
                entry_id,
                identity_user.id,
                exc_info=exc,
            )
            raise DatabaseError("Failed to restore user in database") from exc

        await self.append_best_effort(
            action_type=ACTION_RESTORE,
            actor=actor,
            target_user_id=identity_user.id,
            target_user_email=email,
            previous_data=entry.previous_data,
            new_data={
                "user_id": identity_user.id,
                "email": email,
                "name": name,
                "role": role,
                "needs_password_reset": True,
            },
        )
        logger.info("user_restored history_id=%s user_id=%s", entry_id, identity_user.id)
        return RestoreResult(new_account_id=identity_user.id, email=email, needs_password_reset=True)
