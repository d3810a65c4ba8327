from __future__ import annotations

import json

import httpx
import pytest

from deploytrack.core.errors import ConfigurationError, IdentityProviderError
from deploytrack.providers.identity.supabase_admin import SupabaseAdminProvider


def _provider(handler) -> SupabaseAdminProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseAdminProvider(base_url="https://project.supabase.co/", service_role_key="service-key", client=client)


def test_missing_configuration_raises() -> None:
    with pytest.raises(ConfigurationError):
        SupabaseAdminProvider(base_url="", service_role_key="service-key")
    with pytest.raises(ConfigurationError):
        SupabaseAdminProvider(base_url="https://project.supabase.co", service_role_key="")


@pytest.mark.asyncio
async def test_create_user_posts_admin_payload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user-1", "email": "tech@example.com", "user_metadata": {"restored": True}})

    provider = _provider(handler)
    user = await provider.create_user(
        email="tech@example.com",
        password="Secret123",
        email_confirm=True,
        user_metadata={"restored": True},
    )

    assert user.id == "user-1"
    assert user.user_metadata == {"restored": True}
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://project.supabase.co/auth/v1/admin/users"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["Authorization"] == "Bearer service-key"
    assert json.loads(request.content) == {
        "email": "tech@example.com",
        "password": "Secret123",
        "email_confirm": True,
        "user_metadata": {"restored": True},
    }


@pytest.mark.asyncio
async def test_create_user_accepts_wrapped_user_payload() -> None:
    provider = _provider(lambda request: httpx.Response(200, json={"user": {"id": "user-2", "email": "a@b.c"}}))
    user = await provider.create_user(email="a@b.c", password="Secret123")
    assert user.id == "user-2"


@pytest.mark.asyncio
async def test_errors_carry_provider_message_and_status() -> None:
    provider = _provider(
        lambda request: httpx.Response(422, json={"msg": "A user with this email address has already been registered"})
    )
    with pytest.raises(IdentityProviderError) as excinfo:
        await provider.create_user(email="dup@example.com", password="Secret123")
    assert excinfo.value.status_code == 422
    assert "already been registered" in str(excinfo.value)


@pytest.mark.asyncio
async def test_update_and_delete_target_the_user() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={})

    provider = _provider(handler)
    await provider.update_user("user-1", password="NewSecret123")
    await provider.update_user("user-1")
    await provider.delete_user("user-1")

    assert [(request.method, request.url.path) for request in seen] == [
        ("PUT", "/auth/v1/admin/users/user-1"),
        ("DELETE", "/auth/v1/admin/users/user-1"),
    ]
    assert json.loads(seen[0].content) == {"password": "NewSecret123"}


@pytest.mark.asyncio
async def test_transport_failures_become_identity_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    provider = _provider(handler)
    with pytest.raises(IdentityProviderError):
        await provider.delete_user("user-1")
