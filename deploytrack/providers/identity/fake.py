from __future__ import annotations

from typing import Any
from uuid import uuid4

from deploytrack.core.errors import IdentityProviderError
from deploytrack.providers.identity.base import IdentityUser


class FakeIdentityProvider:
    def __init__(self) -> None:
        # Keep credentials in memory so tests can assert on issued passwords.
        self.users: dict[str, IdentityUser] = {}
        self.passwords: dict[str, str] = {}
        self.fail_create = False

    async def create_user(
        self,
        *,
        email: str,
        password: str,
        email_confirm: bool = True,
        user_metadata: dict[str, Any] | None = None,
    ) -> IdentityUser:
        _ = email_confirm
        if self.fail_create:
            raise IdentityProviderError("Identity provider unavailable", status_code=503)
        if any(user.email == email for user in self.users.values()):
            raise IdentityProviderError(
                "A user with this email address has already been registered", status_code=422
            )
        user = IdentityUser(id=uuid4().hex, email=email, user_metadata=dict(user_metadata or {}))
        self.users[user.id] = user
        self.passwords[user.id] = password
        return user

    async def update_user(
        self,
        user_id: str,
        *,
        email: str | None = None,
        password: str | None = None,
    ) -> None:
        user = self.users.get(user_id)
        if user is None:
            raise IdentityProviderError("User not found", status_code=404)
        if email is not None:
            self.users[user_id] = IdentityUser(id=user.id, email=email, user_metadata=user.user_metadata)
        if password is not None:
            self.passwords[user_id] = password

    async def delete_user(self, user_id: str) -> None:
        if self.users.pop(user_id, None) is None:
            raise IdentityProviderError("User not found", status_code=404)
        self.passwords.pop(user_id, None)
