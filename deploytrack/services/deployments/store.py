"""Spreadsheet-backed deployment record store.

The remote sheet is the system of record: nothing is cached between calls
and every update re-reads the sheet before writing. There is no optimistic
locking, so two concurrent updates to the same row resolve as last write
wins; each writer only fills the columns it did not set from its own fresh
read.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import random
from typing import Any, Callable, Iterable, Mapping

from deploytrack.core.errors import MissingIdentifierError, RecordNotFoundError, RemoteWriteError
from deploytrack.domain.deployments import (
    DEPLOYMENT_ID_FIELD,
    ID_FIELD,
    IDENTIFIER_FIELDS,
    DeploymentRecord,
    matches_identifier,
    record_id,
    with_aliases,
)
from deploytrack.providers.sheets.base import SheetsBackend
from deploytrack.services.deployments.codec import column_letter, decode_row, encode_row
from deploytrack.services.deployments.formula_rows import FormulaRowMask


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeploymentStoreConfig:
    spreadsheet_id: str
    sheet_name: str = "Sheet1"
    formula_rows: FormulaRowMask = field(default_factory=FormulaRowMask)


@dataclass(frozen=True)
class UpdateResult:
    deployment_id: str
    fields_updated: list[str]
    row_number: int


def generate_deployment_id(now: datetime, rng: random.Random | None = None) -> str:
    # DEP-<YYYYMMDD>-<4 digits>
    suffix = (rng or random).randint(1000, 9999)
    return f"DEP-{now.strftime('%Y%m%d')}-{suffix}"


class DeploymentRecordStore:
    def __init__(
        self,
        backend: SheetsBackend,
        config: DeploymentStoreConfig,
        *,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._backend = backend
        self._config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng

    @property
    def config(self) -> DeploymentStoreConfig:
        return self._config

    async def _read_sheet(self) -> tuple[list[str], list[DeploymentRecord]]:
        rows = await self._backend.get_values(self._config.spreadsheet_id, self._config.sheet_name)
        if not rows:
            return [], []
        headers = [str(header) for header in rows[0]]
        mask = self._config.formula_rows
        records = [
            decode_row(headers, row)
            for data_index, row in enumerate(rows[1:])
            if not mask.is_formula_row(data_index)
        ]
        return headers, records

    async def _read_headers(self) -> list[str]:
        rows = await self._backend.get_values(
            self._config.spreadsheet_id, f"{self._config.sheet_name}!1:1"
        )
        return [str(header) for header in rows[0]] if rows else []

    async def list_all(self) -> list[DeploymentRecord]:
        _headers, records = await self._read_sheet()
        logger.debug("deployments_listed count=%s", len(records))
        return records

    async def create(self, record: Mapping[str, Any]) -> DeploymentRecord:
        payload = dict(record)
        if record_id(payload) is None:
            payload[DEPLOYMENT_ID_FIELD] = generate_deployment_id(self._clock(), self._rng)
            logger.info("deployment_id_generated deployment_id=%s", payload[DEPLOYMENT_ID_FIELD])
        payload = with_aliases(payload)

        headers = await self._read_headers()
        if not headers:
            raise RemoteWriteError("Spreadsheet has no header row")
        row = encode_row(headers, payload)
        range_ = f"{self._config.sheet_name}!A:{column_letter(len(headers) - 1)}"
        # Appends always land after the last populated row, trailing formula rows included.
        await self._backend.append_row(self._config.spreadsheet_id, range_, row)
        logger.info("deployment_created deployment_id=%s", payload[DEPLOYMENT_ID_FIELD])
        return payload

    async def update_full(self, record: Mapping[str, Any]) -> UpdateResult:
        requested = [name for name in record if name not in IDENTIFIER_FIELDS]
        return await self._write_merged(record, requested)

    async def update_fields(self, record: Mapping[str, Any], changed_fields: Iterable[str]) -> UpdateResult:
        identifier = record_id(record)
        if identifier is None:
            raise MissingIdentifierError("Deployment ID is required for updates")
        changed = [name for name in dict.fromkeys(changed_fields) if name not in IDENTIFIER_FIELDS]
        payload: DeploymentRecord = {ID_FIELD: identifier, DEPLOYMENT_ID_FIELD: identifier}
        for name in changed:
            if name in record:
                payload[name] = record[name]
        return await self._write_merged(payload, changed)

    async def _write_merged(self, record: Mapping[str, Any], requested: list[str]) -> UpdateResult:
        identifier = record_id(record)
        if identifier is None:
            raise MissingIdentifierError("Deployment ID is required for updates")

        headers, records = await self._read_sheet()
        logical_index = next(
            (index for index, existing in enumerate(records) if matches_identifier(existing, identifier)),
            None,
        )
        if logical_index is None:
            raise RecordNotFoundError(identifier)
        existing = records[logical_index]

        row_number = self._config.formula_rows.physical_row_for(logical_index)
        # Columns not supplied by the caller come from the fresh remote snapshot, never blanked.
        row = encode_row(headers, with_aliases(record), fallback=existing)
        last_column = column_letter(len(headers) - 1)
        range_ = f"{self._config.sheet_name}!A{row_number}:{last_column}{row_number}"
        try:
            await self._backend.update_row(self._config.spreadsheet_id, range_, row)
        except RemoteWriteError:
            logger.error("deployment_update_failed deployment_id=%s row=%s", identifier, row_number)
            raise

        header_set = set(headers)
        ignored = [name for name in requested if name not in header_set]
        if ignored:
            logger.debug("deployment_update_ignored_fields deployment_id=%s fields=%s", identifier, ignored)
        fields_updated = [name for name in requested if name in header_set]
        logger.info(
            "deployment_updated deployment_id=%s row=%s fields=%s",
            identifier,
            row_number,
            len(fields_updated),
        )
        return UpdateResult(deployment_id=identifier, fields_updated=fields_updated, row_number=row_number)
