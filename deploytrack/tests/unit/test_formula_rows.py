from __future__ import annotations

import pytest

from deploytrack.services.deployments.formula_rows import FormulaRowMask


def test_from_sheet_rows_converts_to_data_indices() -> None:
    mask = FormulaRowMask.from_sheet_rows("2,5")
    assert mask.indices == (0, 3)
    assert mask.sheet_rows() == [2, 5]


def test_from_sheet_rows_ignores_blanks_junk_and_header() -> None:
    mask = FormulaRowMask.from_sheet_rows(" 7, ,abc,1,0,2,7 ")
    assert mask.indices == (0, 5)


def test_from_sheet_rows_handles_missing_config() -> None:
    assert len(FormulaRowMask.from_sheet_rows(None)) == 0
    assert len(FormulaRowMask.from_sheet_rows("")) == 0


def test_is_formula_row() -> None:
    mask = FormulaRowMask([0, 3])
    assert mask.is_formula_row(0)
    assert mask.is_formula_row(3)
    assert not mask.is_formula_row(1)


def test_physical_row_without_formula_rows() -> None:
    mask = FormulaRowMask()
    assert [mask.physical_row_for(i) for i in range(3)] == [2, 3, 4]


def test_physical_row_skips_leading_formula_row() -> None:
    mask = FormulaRowMask([0])
    assert mask.physical_row_for(0) == 3
    assert mask.physical_row_for(4) == 7


def test_physical_row_skips_consecutive_and_interleaved_formula_rows() -> None:
    # Sheet rows: 2 formula, 3 rec0, 4 rec1, 5 formula, 6 rec2, 7 formula, 8 formula, 9 rec3.
    mask = FormulaRowMask.from_sheet_rows("2,5,7,8")
    assert [mask.physical_row_for(i) for i in range(4)] == [3, 4, 6, 9]


def test_physical_row_is_strictly_increasing_and_never_a_formula_row() -> None:
    mask = FormulaRowMask([0, 1, 4, 9, 10, 11, 20])
    rows = [mask.physical_row_for(i) for i in range(50)]
    assert all(later > earlier for earlier, later in zip(rows, rows[1:]))
    formula_sheet_rows = set(mask.sheet_rows())
    assert not formula_sheet_rows.intersection(rows)


def test_identical_masks_assign_identical_rows() -> None:
    first = FormulaRowMask.from_sheet_rows("2,6")
    second = FormulaRowMask.from_sheet_rows("6,2")
    assert [first.physical_row_for(i) for i in range(10)] == [second.physical_row_for(i) for i in range(10)]


def test_negative_logical_index_is_rejected() -> None:
    with pytest.raises(ValueError):
        FormulaRowMask([0]).physical_row_for(-1)
