from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class IdentityUser:
    id: str
    email: str
    user_metadata: dict[str, Any] = field(default_factory=dict)


class IdentityProvider(Protocol):
    async def create_user(
        self,
        *,
        email: str,
        password: str,
        email_confirm: bool = True,
        user_metadata: dict[str, Any] | None = None,
    ) -> IdentityUser:
        ...

    async def update_user(
        self,
        user_id: str,
        *,
        email: str | None = None,
        password: str | None = None,
    ) -> None:
        ...

    async def delete_user(self, user_id: str) -> None:
        ...
