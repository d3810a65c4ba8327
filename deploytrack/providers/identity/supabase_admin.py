from __future__ import annotations

import logging
from typing import Any

import httpx

from deploytrack.core.config import get_settings
from deploytrack.core.errors import ConfigurationError, IdentityProviderError
from deploytrack.providers.identity.base import IdentityUser


logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    # GoTrue has used msg, message and error_description across versions.
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Identity provider error: {response.status_code}"


class SupabaseAdminProvider:
    """Supabase Auth (GoTrue) admin API using the service-role key."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        service_role_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = get_settings()
        self._base_url = (base_url or self._settings.supabase_url or "").rstrip("/")
        self._service_role_key = service_role_key or self._settings.supabase_service_role_key
        if not self._base_url:
            raise ConfigurationError("SUPABASE_URL is required for the Supabase identity provider")
        if not self._service_role_key:
            raise ConfigurationError("SUPABASE_SERVICE_ROLE_KEY is required for the Supabase identity provider")
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        timeout_s = self._settings.ext_call_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._service_role_key or "",
            "Authorization": f"Bearer {self._service_role_key}",
        }

    async def _request(self, method: str, path: str, *, operation: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}/auth/v1/admin{path}"
        try:
            response = await self._get_client().request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("identity_request_failed operation=%s", operation, exc_info=exc)
            raise IdentityProviderError(f"Identity provider {operation} request failed") from exc
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning("identity_request_error operation=%s status=%s", operation, response.status_code)
            raise IdentityProviderError(message, status_code=response.status_code)
        return response

    async def create_user(
        self,
        *,
        email: str,
        password: str,
        email_confirm: bool = True,
        user_metadata: dict[str, Any] | None = None,
    ) -> IdentityUser:
        payload: dict[str, Any] = {"email": email, "password": password, "email_confirm": email_confirm}
        if user_metadata:
            payload["user_metadata"] = user_metadata
        response = await self._request("POST", "/users", operation="create", json=payload)
        body = response.json()
        # Older GoTrue releases wrap the user object.
        user = body.get("user", body) if isinstance(body, dict) else {}
        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            raise IdentityProviderError("Failed to create user")
        return IdentityUser(
            id=str(user_id),
            email=str(user.get("email") or email),
            user_metadata=dict(user.get("user_metadata") or {}),
        )

    async def update_user(
        self,
        user_id: str,
        *,
        email: str | None = None,
        password: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {}
        if email is not None:
            payload["email"] = email
        if password is not None:
            payload["password"] = password
        if not payload:
            return
        await self._request("PUT", f"/users/{user_id}", operation="update", json=payload)

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/users/{user_id}", operation="delete")
