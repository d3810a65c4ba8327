"""Mapping between spreadsheet rows and deployment records.

The codec is deliberately permissive: spreadsheet content is unvalidated, so
short rows, missing cells and unknown record fields never raise. Missing
data simply becomes an empty string.
"""
from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping, Sequence

from deploytrack.domain.deployments import DeploymentRecord


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


def decode_row(headers: Sequence[str], row: Sequence[Any]) -> DeploymentRecord:
    record: DeploymentRecord = {}
    for index, header in enumerate(headers):
        record[header] = _cell(row[index]) if index < len(row) else ""
    return record


def decode_rows(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> Iterator[DeploymentRecord]:
    for row in rows:
        yield decode_row(headers, row)


def encode_row(
    headers: Sequence[str],
    record: Mapping[str, Any],
    fallback: Mapping[str, Any] | None = None,
) -> list[str]:
    # Columns the caller did not set are reconstituted from the fallback snapshot.
    fallback = fallback or {}
    row: list[str] = []
    for header in headers:
        if header in record and record[header] is not None:
            row.append(_cell(record[header]))
        elif header in fallback and fallback[header] is not None:
            row.append(_cell(fallback[header]))
        else:
            row.append("")
    return row


def column_letter(index: int) -> str:
    # 0 -> A, 25 -> Z, 26 -> AA.
    if index < 0:
        raise ValueError("column index must be non-negative")
    letters = ""
    current = index
    while current >= 0:
        letters = chr(ord("A") + current % 26) + letters
        current = current // 26 - 1
    return letters
