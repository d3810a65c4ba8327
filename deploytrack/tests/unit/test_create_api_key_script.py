from __future__ import annotations

import argparse

import pytest
from sqlalchemy import select

from deploytrack.domain.models import Account, ApiKey
from deploytrack.persistence.db import SessionLocal
from scripts.create_api_key import _create_key


def _args(**overrides) -> argparse.Namespace:
    values = {"email": "ops@example.com", "name": "ops-key", "user_id": None, "role": None, "display_name": None}
    values.update(overrides)
    return argparse.Namespace(**values)


@pytest.mark.asyncio
async def test_create_api_key_provisions_account_and_key() -> None:
    status = await _create_key(_args(user_id="idp-123", role="admin", display_name="Ops"))
    assert status == 0

    async with SessionLocal() as session:
        account = await session.get(Account, "idp-123")
        assert account is not None
        assert (account.email, account.name, account.role) == ("ops@example.com", "Ops", "admin")
        keys = (await session.execute(select(ApiKey).where(ApiKey.user_id == "idp-123"))).scalars().all()
        assert len(keys) == 1
        assert keys[0].key_prefix.startswith("dtk_")


@pytest.mark.asyncio
async def test_create_api_key_requires_identity_for_new_accounts() -> None:
    with pytest.raises(ValueError):
        await _create_key(_args())
