"""
A1 notation helpers.

Builds range strings such as ``Sheet1!A1:C10`` from optional row/column
bounds and converts 1-based column numbers to column letters.
"""

from __future__ import annotations

DEFAULT_SHEET = "Sheet1"


def column_to_letter(column: int) -> str:
    """Convert a 1-based column number to A1 notation letter(s).

    Examples:
        1 -> A, 26 -> Z, 27 -> AA, 52 -> AZ, 702 -> ZZ, 703 -> AAA
    """
    if column <= 0:
        raise ValueError(f"Column number must be positive, got {column}")

    result = ""
    while column > 0:
        column, remainder = divmod(column - 1, 26)
        result = chr(ord("A") + remainder) + result
    return result


def build_range(
    sheet: str,
    start_row: str | None = None,
    end_row: str | None = None,
    start_col: str | None = None,
    end_col: str | None = None,
) -> str:
    """Build an A1 range from a sheet name and optional bounds.

    With no bounds the bare sheet name is returned, which the Sheets API reads
    as the sheet's whole used region. Bounds are not validated: a malformed
    combination (for example only ``end_col``) is passed through and rejected
    by the API.

    Examples:
        ("Sheet1") -> Sheet1
        ("Sheet1", "2", None, "B", None) -> Sheet1!B2
        ("Sheet1", "1", "10", "A", "C") -> Sheet1!A1:C10
    """
    if not (start_row or end_row or start_col or end_col):
        return sheet

    result = f"{sheet}!{start_col or 'A'}{start_row or '1'}"
    if end_col or end_row:
        result += f":{end_col or ''}{end_row or ''}"
    return result


def effective_range(sheet: str, rows: int, columns: int) -> str:
    """Range covering ``rows`` x ``columns`` cells from A1."""
    if rows > 0 and columns > 0:
        return f"{sheet}!A1:{column_to_letter(columns)}{rows}"
    return f"{sheet}!A1:A1"
