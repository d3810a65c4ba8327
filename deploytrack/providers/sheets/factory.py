from __future__ import annotations

from deploytrack.core.config import get_settings
from deploytrack.core.errors import ConfigurationError
from deploytrack.providers.sheets.fake import FakeSheetsBackend
from deploytrack.providers.sheets.google_sheets import GoogleSheetsBackend


def get_sheets_backend():
    settings = get_settings()
    provider = (settings.sheets_provider or "google").lower()

    if provider == "fake":
        return FakeSheetsBackend()
    if provider == "google":
        return GoogleSheetsBackend()

    raise ConfigurationError(f"Unsupported sheets provider: {provider}")
