from __future__ import annotations

from datetime import datetime, timezone
import random
import re

import pytest

from deploytrack.core.errors import (
    MissingIdentifierError,
    RecordNotFoundError,
    RemoteReadError,
    RemoteWriteError,
)
from deploytrack.providers.sheets.fake import FakeSheetsBackend
from deploytrack.services.deployments.formula_rows import FormulaRowMask
from deploytrack.services.deployments.store import (
    DeploymentRecordStore,
    DeploymentStoreConfig,
    generate_deployment_id,
)


HEADERS = ["Deployment ID", "Status", "Assigned To"]
FORMULA_ROW = ["=COUNTA(A3:A)", "=COUNTIF(B3:B,\"Completed\")", ""]


def _store(rows: list[list[str]], *, formula_rows: str = "2") -> tuple[DeploymentRecordStore, FakeSheetsBackend]:
    backend = FakeSheetsBackend({"Sheet1": rows})
    config = DeploymentStoreConfig(
        spreadsheet_id="sheet-id",
        sheet_name="Sheet1",
        formula_rows=FormulaRowMask.from_sheet_rows(formula_rows),
    )
    clock = lambda: datetime(2024, 3, 9, 12, 0, tzinfo=timezone.utc)  # noqa: E731
    return DeploymentRecordStore(backend, config, clock=clock, rng=random.Random(7)), backend


@pytest.mark.asyncio
async def test_list_all_skips_formula_row() -> None:
    store, _backend = _store([HEADERS, FORMULA_ROW, ["DEP-1", "Pending", "Alice"]])
    records = await store.list_all()
    assert records == [{"Deployment ID": "DEP-1", "Status": "Pending", "Assigned To": "Alice"}]


@pytest.mark.asyncio
async def test_list_all_empty_sheet() -> None:
    store, _backend = _store([])
    assert await store.list_all() == []


@pytest.mark.asyncio
async def test_list_all_keeps_sheet_order_and_pads_short_rows() -> None:
    store, _backend = _store(
        [HEADERS, FORMULA_ROW, ["DEP-2", "Completed"], ["DEP-1", "Pending", "Alice"]]
    )
    records = await store.list_all()
    assert [record["Deployment ID"] for record in records] == ["DEP-2", "DEP-1"]
    assert records[0]["Assigned To"] == ""


@pytest.mark.asyncio
async def test_list_all_surfaces_read_failures() -> None:
    store, backend = _store([HEADERS])
    backend.fail_reads = True
    with pytest.raises(RemoteReadError):
        await store.list_all()


@pytest.mark.asyncio
async def test_update_fields_preserves_untouched_columns() -> None:
    store, backend = _store([HEADERS, FORMULA_ROW, ["DEP-1", "Pending", "Alice"]])
    result = await store.update_fields({"id": "DEP-1", "Status": "Completed"}, ["Status"])

    assert result.deployment_id == "DEP-1"
    assert result.row_number == 3
    assert result.fields_updated == ["Status"]
    assert backend.writes == [("update", "Sheet1!A3:C3", ["DEP-1", "Completed", "Alice"])]
    assert backend.sheets["Sheet1"][1] == FORMULA_ROW


@pytest.mark.asyncio
async def test_update_fields_ignores_fields_outside_the_changed_set() -> None:
    store, backend = _store([HEADERS, FORMULA_ROW, ["DEP-1", "Pending", "Alice"]])
    # A stale Assigned To in the payload must not overwrite the remote value.
    await store.update_fields(
        {"Deployment ID": "DEP-1", "Status": "On Hold", "Assigned To": "Stale"},
        ["Status"],
    )
    assert backend.sheets["Sheet1"][2] == ["DEP-1", "On Hold", "Alice"]


@pytest.mark.asyncio
async def test_update_fields_with_empty_set_rewrites_row_unchanged() -> None:
    store, backend = _store([HEADERS, FORMULA_ROW, ["DEP-1", "Pending", "Alice"]])
    result = await store.update_fields({"id": "DEP-1", "Status": "Completed"}, [])
    assert result.fields_updated == []
    assert backend.writes == [("update", "Sheet1!A3:C3", ["DEP-1", "Pending", "Alice"])]


@pytest.mark.asyncio
async def test_update_full_uses_fresh_remote_state_for_missing_fields() -> None:
    store, backend = _store(
        [HEADERS, FORMULA_ROW, ["DEP-1", "Pending", "Alice"], ["DEP-2", "Assigned", "Bob"]]
    )
    result = await store.update_full({"Deployment ID": "DEP-2", "Status": "Deployed", "Notes": "x"})
    assert result.row_number == 4
    # Notes is not a header column, so only Status counts as updated.
    assert result.fields_updated == ["Status"]
    assert backend.sheets["Sheet1"][3] == ["DEP-2", "Deployed", "Bob"]


@pytest.mark.asyncio
async def test_update_resolves_rows_after_interleaved_formula_rows() -> None:
    rows = [
        HEADERS,
        FORMULA_ROW,
        ["DEP-1", "Pending", "Alice"],
        ["DEP-2", "Pending", "Bob"],
        FORMULA_ROW,
        ["DEP-3", "Pending", "Cara"],
    ]
    store, backend = _store(rows, formula_rows="2,5")
    result = await store.update_fields({"id": "DEP-3", "Status": "Completed"}, ["Status"])
    assert result.row_number == 6
    assert backend.sheets["Sheet1"][4] == FORMULA_ROW
    assert backend.sheets["Sheet1"][5] == ["DEP-3", "Completed", "Cara"]


@pytest.mark.asyncio
async def test_update_first_match_wins_for_duplicate_ids() -> None:
    store, backend = _store(
        [HEADERS, FORMULA_ROW, ["DEP-1", "Pending", "Alice"], ["DEP-1", "Pending", "Bob"]]
    )
    result = await store.update_fields({"id": "DEP-1", "Status": "Completed"}, ["Status"])
    assert result.row_number == 3
    assert backend.sheets["Sheet1"][3] == ["DEP-1", "Pending", "Bob"]


@pytest.mark.asyncio
async def test_update_requires_an_identifier() -> None:
    store, backend = _store([HEADERS, FORMULA_ROW, ["DEP-1", "Pending", "Alice"]])
    with pytest.raises(MissingIdentifierError):
        await store.update_full({"Status": "Completed"})
    with pytest.raises(MissingIdentifierError):
        await store.update_fields({"id": "  ", "Status": "Completed"}, ["Status"])
    assert backend.writes == []


@pytest.mark.asyncio
async def test_update_unknown_identifier_raises_not_found() -> None:
    store, backend = _store([HEADERS, FORMULA_ROW, ["DEP-1", "Pending", "Alice"]])
    with pytest.raises(RecordNotFoundError) as excinfo:
        await store.update_full({"id": "DEP-404", "Status": "Completed"})
    assert excinfo.value.deployment_id == "DEP-404"
    assert backend.writes == []


@pytest.mark.asyncio
async def test_update_surfaces_write_failures() -> None:
    store, backend = _store([HEADERS, FORMULA_ROW, ["DEP-1", "Pending", "Alice"]])
    backend.fail_writes = True
    with pytest.raises(RemoteWriteError):
        await store.update_full({"id": "DEP-1", "Status": "Completed"})


@pytest.mark.asyncio
async def test_create_with_empty_input_generates_identifier() -> None:
    store, backend = _store([HEADERS, FORMULA_ROW])
    created = await store.create({})

    deployment_id = created["Deployment ID"]
    assert re.fullmatch(r"DEP-\d{8}-\d{4}", deployment_id)
    assert deployment_id.startswith("DEP-20240309-")
    assert created["id"] == deployment_id
    assert backend.writes == [("append", "Sheet1!A:C", [deployment_id, "", ""])]


@pytest.mark.asyncio
async def test_create_keeps_supplied_identifier_from_either_alias() -> None:
    store, backend = _store([HEADERS, FORMULA_ROW])
    created = await store.create({"id": "DEP-CUSTOM", "Status": "Pending"})
    assert created["Deployment ID"] == "DEP-CUSTOM"
    assert backend.sheets["Sheet1"][-1] == ["DEP-CUSTOM", "Pending", ""]


@pytest.mark.asyncio
async def test_create_without_header_row_fails() -> None:
    store, backend = _store([])
    with pytest.raises(RemoteWriteError):
        await store.create({"Status": "Pending"})
    assert backend.writes == []


def test_generate_deployment_id_range() -> None:
    now = datetime(2025, 1, 2, tzinfo=timezone.utc)
    rng = random.Random(1)
    for _ in range(200):
        suffix = int(generate_deployment_id(now, rng).rsplit("-", 1)[1])
        assert 1000 <= suffix <= 9999
