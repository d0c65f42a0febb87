"""Cell and range reference helpers shared by every decoder."""

from __future__ import annotations

import re
from typing import Tuple

_CELL_REF_RE = re.compile(r"^\$?([A-Z]+)\$?(\d+)$")

# A1-style reference in a formula, not part of a longer name or a function call
_FORMULA_REF_RE = re.compile(r"(?<![A-Za-z0-9_.])(\$?)([A-Z]{1,3})(\$?)(\d+)(?![A-Za-z0-9_(])")


def col_letter_to_index(col: str) -> int:
    """Convert column letter(s) to 1-indexed number. A=1, B=2, ..., Z=26, AA=27."""
    result = 0
    for char in col.upper():
        result = result * 26 + (ord(char) - ord("A") + 1)
    return result


def col_index_to_letter(index: int) -> str:
    """Convert 1-indexed column number to letter(s). 1=A, 2=B, ..., 27=AA."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    result = ""
    while index > 0:
        index -= 1
        result = chr(ord("A") + (index % 26)) + result
        index //= 26
    return result


def make_address(row: int, col: int) -> str:
    """Build an address like 'B2' from 1-based row and column."""
    return f"{col_index_to_letter(col)}{row}"


def parse_cell_ref(ref: str) -> Tuple[str, int, int]:
    """Parse cell reference like 'A1' or 'AA100' into (col_letter, col_num, row_num)."""
    match = _CELL_REF_RE.match(ref.strip().upper())
    if not match:
        raise ValueError(f"Invalid cell reference: {ref}")
    col_letter = match.group(1)
    row = int(match.group(2))
    return col_letter, col_letter_to_index(col_letter), row


def parse_range_ref(ref: str) -> Tuple[int, int, int, int]:
    """Parse range like 'B2:F6' into (start_row, start_col, end_row, end_col).

    A single cell reference is treated as a 1x1 range. Corners are normalized
    so start <= end on both axes.
    """
    parts = ref.split(":")
    if len(parts) == 1:
        parts = [parts[0], parts[0]]
    if len(parts) != 2:
        raise ValueError(f"Invalid range reference: {ref}")

    _, start_col, start_row = parse_cell_ref(parts[0])
    _, end_col, end_row = parse_cell_ref(parts[1])

    return (
        min(start_row, end_row),
        min(start_col, end_col),
        max(start_row, end_row),
        max(start_col, end_col),
    )


def translate_formula(formula: str, row_offset: int, col_offset: int) -> str:
    """Shift the relative A1 references of a formula, leaving $-anchored parts alone.

    Text inside double-quoted string literals is never touched.
    """
    if not row_offset and not col_offset:
        return formula

    def shift(match: "re.Match[str]") -> str:
        col_abs, letters, row_abs, digits = match.groups()
        col = col_letter_to_index(letters)
        row = int(digits)
        if not col_abs:
            col += col_offset
        if not row_abs:
            row += row_offset
        if col < 1 or row < 1:
            return "#REF!"
        return f"{col_abs}{col_index_to_letter(col)}{row_abs}{row}"

    pieces = formula.split('"')
    # Even-indexed pieces sit outside string literals.
    for i in range(0, len(pieces), 2):
        pieces[i] = _FORMULA_REF_RE.sub(shift, pieces[i])
    return '"'.join(pieces)
