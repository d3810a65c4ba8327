from __future__ import annotations

import logging

from deploytrack.core.config import Settings, get_settings
from deploytrack.core.errors import ConfigurationError
from deploytrack.providers.sheets.base import SheetsBackend
from deploytrack.providers.sheets.factory import get_sheets_backend
from deploytrack.services.deployments.formula_rows import FormulaRowMask
from deploytrack.services.deployments.store import DeploymentRecordStore, DeploymentStoreConfig


logger = logging.getLogger(__name__)


def store_config_from_settings(settings: Settings | None = None) -> DeploymentStoreConfig:
    settings = settings or get_settings()
    if not settings.deployment_spreadsheet_id:
        raise ConfigurationError("DEPLOYMENT_SPREADSHEET_ID is required")
    mask = FormulaRowMask.from_sheet_rows(settings.sheet_formula_rows)
    logger.debug("formula_rows_configured sheet_rows=%s", mask.sheet_rows())
    return DeploymentStoreConfig(
        spreadsheet_id=settings.deployment_spreadsheet_id,
        sheet_name=settings.deployment_sheet_name or "Sheet1",
        formula_rows=mask,
    )


def build_deployment_store(backend: SheetsBackend | None = None) -> DeploymentRecordStore:
    return DeploymentRecordStore(backend or get_sheets_backend(), store_config_from_settings())
