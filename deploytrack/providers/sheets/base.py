from __future__ import annotations

from typing import Protocol, Sequence


class SheetsBackend(Protocol):
    """Positional access to a spreadsheet; ranges use A1 notation."""

    async def get_values(self, spreadsheet_id: str, range_: str) -> list[list[str]]:
        ...

    async def update_row(self, spreadsheet_id: str, range_: str, values: Sequence[str]) -> None:
        ...

    async def append_row(self, spreadsheet_id: str, range_: str, values: Sequence[str]) -> None:
        ...
