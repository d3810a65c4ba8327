from __future__ import annotations

import re
from typing import Sequence

from deploytrack.core.errors import RemoteReadError, RemoteWriteError


_ROW_SPAN = re.compile(r"^(\d+):(\d+)$")
_CELL_SPAN = re.compile(r"^([A-Z]+)(\d*):([A-Z]+)(\d*)$")


def _column_index(letters: str) -> int:
    index = 0
    for char in letters:
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


class FakeSheetsBackend:
    """In-memory spreadsheet keyed by sheet name.

    Understands the A1 ranges the deployment store issues: a bare sheet name,
    `Sheet!1:1` row spans, `Sheet!A5:C5` single-row writes and `Sheet!A:C`
    appends. Every write is recorded in `writes` for assertions.
    """

    def __init__(self, sheets: dict[str, list[list[str]]] | None = None) -> None:
        self.sheets: dict[str, list[list[str]]] = {
            name: [list(row) for row in rows] for name, rows in (sheets or {}).items()
        }
        self.writes: list[tuple[str, str, list[str]]] = []
        self.fail_reads = False
        self.fail_writes = False

    def _split(self, range_: str) -> tuple[str, str | None]:
        if "!" in range_:
            sheet, ref = range_.split("!", 1)
            return sheet, ref
        return range_, None

    async def get_values(self, spreadsheet_id: str, range_: str) -> list[list[str]]:
        _ = spreadsheet_id
        if self.fail_reads:
            raise RemoteReadError("Failed to fetch deployment data")
        sheet, ref = self._split(range_)
        rows = self.sheets.get(sheet, [])
        if ref is None:
            return [list(row) for row in rows]
        match = _ROW_SPAN.match(ref)
        if match is None:
            raise RemoteReadError(f"Unsupported range: {range_}")
        start, end = int(match.group(1)), int(match.group(2))
        return [list(row) for row in rows[start - 1 : end]]

    async def update_row(self, spreadsheet_id: str, range_: str, values: Sequence[str]) -> None:
        _ = spreadsheet_id
        if self.fail_writes:
            raise RemoteWriteError("Failed to update deployment")
        sheet, ref = self._split(range_)
        match = _CELL_SPAN.match(ref or "")
        if match is None or not match.group(2):
            raise RemoteWriteError(f"Unsupported range: {range_}")
        start_col = _column_index(match.group(1))
        row_number = int(match.group(2))
        rows = self.sheets.setdefault(sheet, [])
        while len(rows) < row_number:
            rows.append([])
        target = rows[row_number - 1]
        while len(target) < start_col + len(values):
            target.append("")
        for offset, value in enumerate(values):
            target[start_col + offset] = value
        self.writes.append(("update", range_, list(values)))

    async def append_row(self, spreadsheet_id: str, range_: str, values: Sequence[str]) -> None:
        _ = spreadsheet_id
        if self.fail_writes:
            raise RemoteWriteError("Failed to add deployment")
        sheet, _ref = self._split(range_)
        self.sheets.setdefault(sheet, []).append(list(values))
        self.writes.append(("append", range_, list(values)))
