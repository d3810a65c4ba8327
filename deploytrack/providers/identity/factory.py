from __future__ import annotations

from deploytrack.core.config import get_settings
from deploytrack.core.errors import ConfigurationError
from deploytrack.providers.identity.fake import FakeIdentityProvider
from deploytrack.providers.identity.supabase_admin import SupabaseAdminProvider


def get_identity_provider():
    settings = get_settings()
    provider = (settings.identity_provider or "supabase").lower()

    if provider == "fake":
        return FakeIdentityProvider()
    if provider == "supabase":
        return SupabaseAdminProvider()

    raise ConfigurationError(f"Unsupported identity provider: {provider}")
