"""CSV decoder - one sheet named ``Sheet1`` with per-field type inference."""

from __future__ import annotations

import csv
import io
import logging
import re
from typing import List, Optional, Union

from ..references import make_address
from ..schemas import BoolValue, CellRecord, NumberValue, SheetDimensions, SheetRecord, TextValue, WorkbookRecord
from .base import FormatHandler

logger = logging.getLogger(__name__)

# Longest numeric prefix, accepted the way a loose float parser does ("3.14abc" -> 3.14)
_LEADING_NUMBER_RE = re.compile(
    r"[+-]?(?:Infinity|(?P<int>\d+)(?P<frac>\.\d*)?(?P<exp>[eE][+-]?\d+)?|(?P<dot>\.\d+)(?P<dexp>[eE][+-]?\d+)?)"
)


def parse_leading_number(text: str) -> Optional[Union[int, float]]:
    """Parse the leading numeric part of ``text``, or None if there is none.

    Whole numbers without a fraction or exponent come back as ``int``.
    """
    match = _LEADING_NUMBER_RE.match(text.lstrip())
    if not match:
        return None
    literal = match.group(0)
    if literal.lstrip("+-") == "Infinity":
        return float("-inf") if literal.startswith("-") else float("inf")
    if match.group("int") is not None and match.group("frac") is None and match.group("exp") is None:
        try:
            return int(literal)
        except ValueError:
            # digit run past the int conversion limit
            return float(literal)
    return float(literal)


def infer_cell_value(field: str) -> Union[NumberValue, BoolValue, TextValue]:
    if field == "":
        return TextValue(text="")

    number = parse_leading_number(field)
    if number is not None:
        return NumberValue(number=number)

    lowered = field.lower()
    if lowered in ("true", "false"):
        return BoolValue(flag=lowered == "true")

    return TextValue(text=field.strip())


def decode_csv(data: bytes) -> WorkbookRecord:
    """Decode CSV bytes into a single-sheet WorkbookRecord."""
    text = data.decode("utf-8-sig", errors="replace")
    # a single quoted field may span the whole upload
    if len(text) >= csv.field_size_limit():
        csv.field_size_limit(len(text) + 1)
    reader = csv.reader(io.StringIO(text, newline=""))

    grid: List[List[CellRecord]] = []
    for row_num, fields in enumerate(reader, start=1):
        grid.append([
            CellRecord(
                address=make_address(row_num, col_num),
                row=row_num,
                col=col_num,
                value=infer_cell_value(field),
            )
            for col_num, field in enumerate(fields, start=1)
        ])

    dimensions = None
    if grid:
        dimensions = SheetDimensions(
            top=1,
            bottom=len(grid),
            left=1,
            right=max(len(row) for row in grid),
        )
    logger.debug("CSV decoded: %d row(s)", len(grid))

    sheet = SheetRecord(name="Sheet1", data=grid, dimensions=dimensions)
    return WorkbookRecord(sheets=[sheet], active_sheet_index=0)


CSV_HANDLER = FormatHandler(name="csv", extensions=(".csv",), decode=decode_csv)
