from __future__ import annotations

from typing import Iterable


# Sheet row 1 holds the headers, so data index 0 is sheet row 2.
HEADER_ROWS = 1
FIRST_DATA_ROW = HEADER_ROWS + 1


class FormulaRowMask:
    """Fixed set of data rows that hold spreadsheet formulas.

    Indices are 0-based offsets from the first data row, so the mask lives in
    physical data-row space. Logical record indices (positions among the
    non-formula rows) are a separate space; `physical_row_for` translates
    from the latter to 1-based sheet rows.
    """

    def __init__(self, indices: Iterable[int] = ()) -> None:
        self._indices: tuple[int, ...] = tuple(sorted({int(i) for i in indices if int(i) >= 0}))
        self._lookup = frozenset(self._indices)

    @classmethod
    def from_sheet_rows(cls, raw: str | None) -> "FormulaRowMask":
        # Parse "2,5,10" (1-based sheet rows); blanks, junk and the header row are ignored.
        indices: list[int] = []
        for part in (raw or "").split(","):
            part = part.strip()
            if not part:
                continue
            try:
                sheet_row = int(part)
            except ValueError:
                continue
            if sheet_row < FIRST_DATA_ROW:
                continue
            indices.append(sheet_row - FIRST_DATA_ROW)
        return cls(indices)

    @property
    def indices(self) -> tuple[int, ...]:
        return self._indices

    def sheet_rows(self) -> list[int]:
        return [index + FIRST_DATA_ROW for index in self._indices]

    def is_formula_row(self, index: int) -> bool:
        return index in self._lookup

    def physical_row_for(self, logical_index: int) -> int:
        if logical_index < 0:
            raise ValueError("logical index must be non-negative")
        candidate = logical_index
        # Ascending order lets each preceding formula row push the candidate past later ones.
        for formula_index in self._indices:
            if formula_index <= candidate:
                candidate += 1
            else:
                break
        return candidate + FIRST_DATA_ROW

    def __len__(self) -> int:
        return len(self._indices)

    def __repr__(self) -> str:
        return f"FormulaRowMask(sheet_rows={self.sheet_rows()})"
