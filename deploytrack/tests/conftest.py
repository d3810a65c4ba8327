from __future__ import annotations

import os
import tempfile

# Settings and the engine are built at import time; point them at local fakes first.
_DB_DIR = tempfile.mkdtemp(prefix="deploytrack-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'deploytrack.db')}"
os.environ["SHEETS_PROVIDER"] = "fake"
os.environ["IDENTITY_PROVIDER"] = "fake"
os.environ["AUTH_DEV_BYPASS"] = "true"
os.environ.setdefault("DEPLOYMENT_SPREADSHEET_ID", "test-spreadsheet")

import pytest

from deploytrack.persistence.db import create_schema, drop_schema, engine


@pytest.fixture(autouse=True)
async def database_schema() -> None:
    # Fresh tables per test; dispose afterwards so no connection outlives its event loop.
    await create_schema()
    yield
    await drop_schema()
    await engine.dispose()
