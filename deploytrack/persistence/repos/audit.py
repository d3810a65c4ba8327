from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from deploytrack.domain.models import UserActionHistory


async def insert_entry(session: AsyncSession, entry: UserActionHistory) -> UserActionHistory:
    # Flush so the database assigns the id before the caller commits.
    session.add(entry)
    await session.flush()
    return entry


async def list_entries(
    session: AsyncSession,
    *,
    action_type: str | None = None,
    target_user_id: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> list[UserActionHistory]:
    stmt = select(UserActionHistory)
    if action_type:
        stmt = stmt.where(UserActionHistory.action_type == action_type)
    if target_user_id:
        stmt = stmt.where(UserActionHistory.target_user_id == target_user_id)
    stmt = stmt.order_by(UserActionHistory.timestamp.desc(), UserActionHistory.id.desc())
    stmt = stmt.offset(offset).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_entry_by_id(session: AsyncSession, *, entry_id: int) -> UserActionHistory | None:
    result = await session.execute(select(UserActionHistory).where(UserActionHistory.id == entry_id))
    return result.scalar_one_or_none()
