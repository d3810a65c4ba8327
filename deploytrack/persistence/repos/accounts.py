from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from deploytrack.domain.models import Account


async def list_accounts(session: AsyncSession) -> list[Account]:
    result = await session.execute(select(Account).order_by(Account.created_at.asc(), Account.email.asc()))
    return list(result.scalars().all())


async def get_account(session: AsyncSession, *, user_id: str) -> Account | None:
    return await session.get(Account, user_id)


async def get_account_by_email(session: AsyncSession, *, email: str) -> Account | None:
    result = await session.execute(select(Account).where(Account.email == email))
    return result.scalar_one_or_none()


async def upsert_account_by_email(
    session: AsyncSession,
    *,
    user_id: str,
    email: str,
    name: str,
    role: str,
) -> Account:
    # Email is the conflict key: an existing row is re-bound to the new identity id.
    existing = await get_account_by_email(session, email=email)
    if existing is None:
        account = Account(user_id=user_id, email=email, name=name, role=role)
        session.add(account)
        await session.flush()
        return account
    if existing.user_id != user_id:
        # Primary keys cannot be reassigned in place; replace the row.
        await session.delete(existing)
        await session.flush()
        account = Account(user_id=user_id, email=email, name=name, role=role)
        session.add(account)
        await session.flush()
        return account
    existing.name = name
    existing.role = role
    await session.flush()
    return existing


async def delete_account(session: AsyncSession, *, user_id: str) -> int:
    result = await session.execute(delete(Account).where(Account.user_id == user_id))
    return int(result.rowcount or 0)


async def delete_account_by_email(session: AsyncSession, *, email: str) -> int:
    result = await session.execute(delete(Account).where(Account.email == email))
    return int(result.rowcount or 0)
