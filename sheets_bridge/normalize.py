"""
Grid to record conversion.

A grid is a list of rows of cell strings as returned by the Sheets values
API. Rows may be ragged: the API omits trailing empty cells.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

Grid = list[list[str]]
Record = dict[str, str]


def to_records(grid: Sequence[Sequence[Any]]) -> list[Record]:
    """Convert a grid to header-keyed records.

    Row 0 is the header row. Short rows are padded with empty strings and
    cells beyond the header width are dropped. Duplicate headers overwrite
    each other, so the last such column wins.
    """
    if not grid:
        return []

    headers = grid[0]
    records: list[Record] = []
    for row in grid[1:]:
        record: Record = {}
        for index, header in enumerate(headers):
            value = row[index] if index < len(row) else ""
            record[header] = value if value is not None else ""
        records.append(record)
    return records


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def filter_non_empty(grid: Sequence[Sequence[Any]]) -> Grid:
    """Drop rows whose cells are all empty or whitespace.

    The header row (row 0) is always kept, whatever it contains.
    """
    return [
        list(row)
        for index, row in enumerate(grid)
        if index == 0 or not all(_is_blank(cell) for cell in row)
    ]


def filter_non_empty_records(records: Sequence[Record]) -> list[Record]:
    """Drop records whose values are all empty or whitespace."""
    return [
        dict(record)
        for record in records
        if not all(_is_blank(value) for value in record.values())
    ]


def grid_width(grid: Sequence[Sequence[Any]]) -> int:
    """Length of the longest row, 0 for an empty grid."""
    return max((len(row) for row in grid), default=0)
