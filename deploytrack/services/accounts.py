from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from deploytrack.core.errors import DatabaseError, IdentityProviderError, NotFoundError
from deploytrack.domain.models import Account, UserActionHistory
from deploytrack.persistence.repos import accounts as accounts_repo
from deploytrack.providers.identity.base import IdentityProvider
from deploytrack.services.auth.api_keys import coerce_account_role, normalize_role
from deploytrack.services.user_history import (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_UPDATE,
    Actor,
    AuditLogStore,
)


logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class AccountChangeResult:
    message: str
    account: dict[str, Any] | None = None
    partial: bool = False
    error: str | None = None


def _is_identity_not_found(exc: IdentityProviderError) -> bool:
    return exc.status_code == 404 or "not found" in str(exc).lower()


class UserAccountAdmin:
    """Account lifecycle across the identity provider, the users table and history."""

    def __init__(
        self,
        session: AsyncSession,
        identity: IdentityProvider,
        history: AuditLogStore | None = None,
    ) -> None:
        self._session = session
        self._identity = identity
        self._history = history or AuditLogStore(session, identity)

    async def list_accounts(self) -> list[Account]:
        try:
            return await accounts_repo.list_accounts(self._session)
        except SQLAlchemyError as exc:
            raise DatabaseError("Error fetching users") from exc

    async def _get_or_404(self, user_id: str) -> Account:
        try:
            account = await accounts_repo.get_account(self._session, user_id=user_id)
        except SQLAlchemyError as exc:
            raise DatabaseError("Error fetching user") from exc
        if account is None:
            raise NotFoundError("User not found")
        return account

    async def create_account(
        self,
        *,
        email: str,
        password: str,
        name: str,
        role: str | None,
        actor: Actor,
    ) -> dict[str, Any]:
        if not email or not password or not name:
            raise ValueError("Missing required fields")
        resolved_role = coerce_account_role(role)
        logger.info("account_create_requested email=%s role=%s", email, resolved_role)
        identity_user = await self._identity.create_user(email=email, password=password, email_confirm=True)

        try:
            account = await accounts_repo.upsert_account_by_email(
                self._session,
                user_id=identity_user.id,
                email=email,
                name=name,
                role=resolved_role,
            )
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("account_create_db_failed identity_user_id=%s", identity_user.id, exc_info=exc)
            raise DatabaseError("Failed to store user") from exc
        # A failed history write rolls the session back and expires `account`.
        created = account.snapshot()

        await self._history.append_best_effort(
            action_type=ACTION_CREATE,
            actor=actor,
            target_user_id=created["user_id"],
            target_user_email=created["email"],
            previous_data=None,
            new_data=created,
        )
        return created

    async def update_account(
        self,
        user_id: str,
        *,
        email: str | None = None,
        name: str | None = None,
        role: str | None = None,
        actor: Actor,
    ) -> AccountChangeResult:
        account = await self._get_or_404(user_id)
        previous = account.snapshot()
        if role is not None:
            account.role = normalize_role(role)
        if name is not None:
            account.name = name
        if email is not None:
            account.email = email
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise DatabaseError("Failed to update user") from exc
        updated = account.snapshot()

        if email and email != previous["email"]:
            try:
                await self._identity.update_user(user_id, email=email)
            except IdentityProviderError as exc:
                logger.warning("account_email_sync_failed user_id=%s", user_id, exc_info=exc)
                return AccountChangeResult(
                    message=(
                        "User partially updated: Updated in users table but email change "
                        "failed in authentication system"
                    ),
                    account=updated,
                    partial=True,
                    error=str(exc),
                )

        await self._history.append_best_effort(
            action_type=ACTION_UPDATE,
            actor=actor,
            target_user_id=user_id,
            target_user_email=updated["email"],
            previous_data=previous,
            new_data=updated,
        )
        return AccountChangeResult(message="User updated successfully", account=updated)

    async def delete_account(self, user_id: str, *, actor: Actor) -> AccountChangeResult:
        account = await self._get_or_404(user_id)
        snapshot = account.snapshot()

        # Record the snapshot first; it is what a later restore recreates the account from.
        await self._history.append_best_effort(
            action_type=ACTION_DELETE,
            actor=actor,
            target_user_id=user_id,
            target_user_email=snapshot["email"],
            previous_data=snapshot,
            new_data=None,
        )

        db_deleted = False
        try:
            await accounts_repo.delete_account(self._session, user_id=user_id)
            await self._session.commit()
            db_deleted = True
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.warning("account_delete_db_failed user_id=%s; retrying by email", user_id, exc_info=exc)
            try:
                await accounts_repo.delete_account_by_email(self._session, email=snapshot["email"])
                await self._session.commit()
                db_deleted = True
            except SQLAlchemyError as retry_exc:
                await self._session.rollback()
                logger.error("account_delete_by_email_failed user_id=%s", user_id, exc_info=retry_exc)

        try:
            await self._identity.delete_user(user_id)
        except IdentityProviderError as exc:
            if _is_identity_not_found(exc):
                logger.info("account_identity_already_deleted user_id=%s", user_id)
                if db_deleted:
                    return AccountChangeResult(
                        message="User deleted from users table, not found in auth system"
                    )
            else:
                logger.error("account_identity_delete_failed user_id=%s", user_id, exc_info=exc)
            if db_deleted:
                return AccountChangeResult(
                    message=(
                        "User partially deleted: Removed from users table but not from "
                        "authentication system"
                    ),
                    partial=True,
                    error=str(exc),
                )
            raise

        return AccountChangeResult(message="User deleted successfully")

    async def reset_password(self, user_id: str, new_password: str, *, actor: Actor) -> None:
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        await self._identity.update_user(user_id, password=new_password)
        logger.info("account_password_reset user_id=%s performed_by=%s", user_id, actor.email)

    async def log_action(
        self,
        *,
        action_type: str,
        actor: Actor,
        target_user_id: str | None,
        target_user_email: str,
        previous_data: dict[str, Any] | None = None,
        new_data: dict[str, Any] | None = None,
    ) -> UserActionHistory:
        if not action_type or not target_user_email:
            raise ValueError("Missing required fields")
        return await self._history.append(
            action_type=action_type,
            actor=actor,
            target_user_id=target_user_id,
            target_user_email=target_user_email,
            previous_data=previous_data,
            new_data=new_data,
        )
