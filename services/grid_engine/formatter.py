"""Display formatting for grid cells.

Three read-only views of a cell, consumed by whatever presents the grid:
- ``format_cell_value``: the display string
- ``classify``: semantic tags (numeric, date, formula, wrap-text, long-text, merged)
- ``visual_style``: presentation attributes derived from the resolved style

None of these mutate the cell.
"""

from __future__ import annotations

import html
import logging
import math
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Optional, Set, Union

from pydantic import BaseModel

from .schemas import (
    BoolValue,
    CellRecord,
    CellType,
    ColorSpec,
    DateValue,
    ErrorValue,
    FormulaValue,
    NumberValue,
    RichTextValue,
    StyleDescriptor,
    TextValue,
)

logger = logging.getLogger(__name__)

# Serial day 25569 is 1970-01-01 in the 1900 date system
SERIAL_EPOCH_OFFSET = 25569
_UNIX_EPOCH = datetime(1970, 1, 1)

LONG_TEXT_THRESHOLD = 20
INDENT_UNIT = 8

# Glyph found in the format code -> prefix used for display
CURRENCY_GLYPHS = (
    ("￥", "¥"),
    ("¥", "¥"),
    ("$", "$"),
    ("€", "€"),
    ("£", "£"),
)


class CellTag(str, Enum):
    NUMERIC = "numeric"
    DATE = "date"
    FORMULA = "formula"
    WRAP_TEXT = "wrap-text"
    LONG_TEXT = "long-text"
    MERGED = "merged"


class VisualStyle(BaseModel):
    """Presentation attributes for one cell. Unset fields mean "host default"."""
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    font_size: Optional[float] = None
    font_family: Optional[str] = None
    color: Optional[str] = None  # "#RRGGBB"
    background_color: Optional[str] = None  # "#RRGGBB"
    horizontal: Optional[str] = None
    vertical: Optional[str] = None
    wrap_text: bool = False
    indent: Optional[int] = None  # display units, level * INDENT_UNIT


# =============================================================================
# NUMBER RENDERING
# =============================================================================

def number_to_str(value: Union[int, float]) -> str:
    """Plain decimal string; integral floats drop their ``.0``."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def to_fixed(value: Union[int, float], digits: int) -> str:
    """Fixed fraction digits, rounding the exact binary value half away from zero."""
    if isinstance(value, float) and not math.isfinite(value):
        return number_to_str(value)
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def group_thousands(value: Union[int, float]) -> str:
    """Thousands grouping with at most three fraction digits, e.g. 1234567.891 -> "1,234,567.891"."""
    if isinstance(value, int):
        return f"{value:,}"
    if not math.isfinite(value):
        return number_to_str(value)
    rounded = Decimal(repr(value)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
    text = f"{rounded:,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_number(value: Union[int, float], num_fmt: Optional[str]) -> str:
    if not num_fmt or num_fmt == "General":
        return number_to_str(value)

    if "%" in num_fmt:
        return f"{to_fixed(value * 100, 2)}%"

    for glyph, prefix in CURRENCY_GLYPHS:
        if glyph in num_fmt:
            return f"{prefix}{to_fixed(value, 2)}"

    if ".00" in num_fmt:
        return to_fixed(value, 2)
    if ".0" in num_fmt:
        return to_fixed(value, 1)

    if "," in num_fmt:
        return group_thousands(value)

    return number_to_str(value)


# =============================================================================
# DATE RENDERING
# =============================================================================

def to_datetime(moment: Any) -> Optional[datetime]:
    """Resolve a datetime, serial day-count or date string to a naive UTC datetime."""
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            return moment.astimezone(timezone.utc).replace(tzinfo=None)
        return moment
    if isinstance(moment, (int, float)) and not isinstance(moment, bool):
        try:
            return _UNIX_EPOCH + timedelta(days=moment - SERIAL_EPOCH_OFFSET)
        except (OverflowError, ValueError):
            return None
    if isinstance(moment, str):
        try:
            return to_datetime(datetime.fromisoformat(moment.strip()))
        except ValueError:
            return None
    return None


def format_date(moment: Any, num_fmt: Optional[str]) -> str:
    date = to_datetime(moment)
    if date is None:
        return str(moment)

    if num_fmt:
        if "yyyy" in num_fmt:
            return f"{date.year:04d}-{date.month:02d}-{date.day:02d}"
        if "mm:ss" in num_fmt:
            return f"{date.hour:02d}:{date.minute:02d}:{date.second:02d}"
        if "h:mm" in num_fmt:
            return f"{date.hour}:{date.minute:02d}"

    return f"{date.month}/{date.day}/{date.year}"


# =============================================================================
# CELL FORMATTING
# =============================================================================

def format_plain(value: Any) -> str:
    """Render an arbitrary plain value the way an unknown cell type is shown."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return number_to_str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("text", "result"):
            if value.get(key) is not None:
                return format_plain(value[key])
        if value.get("formula"):
            return f"={value['formula']}"
        return ""
    return str(value)


def _format_formula(value: FormulaValue, cell: CellRecord, num_fmt: Optional[str]) -> str:
    result = value.result
    if isinstance(result, NumberValue):
        return to_fixed(result.number, 2)
    if isinstance(result, DateValue):
        return format_date(result.moment, num_fmt)
    if isinstance(result, ErrorValue):
        return result.error
    if isinstance(result, BoolValue):
        return "TRUE" if result.flag else "FALSE"
    if isinstance(result, TextValue):
        return result.text

    formula = value.formula or cell.formula
    return f"={formula}" if formula else ""


def format_cell_value(cell: CellRecord) -> str:
    """Display string for ``cell``, driven by its type and number format."""
    value = cell.value
    num_fmt = cell.get_style().num_fmt
    cell_type = cell.type

    if cell_type == CellType.NUMBER and isinstance(value, NumberValue):
        return format_number(value.number, num_fmt)
    if cell_type == CellType.BOOLEAN and isinstance(value, BoolValue):
        return "TRUE" if value.flag else "FALSE"
    if cell_type == CellType.DATE and isinstance(value, DateValue):
        return format_date(value.moment, num_fmt)
    if cell_type == CellType.STRING and isinstance(value, TextValue):
        return value.text.strip()
    if cell_type == CellType.FORMULA and isinstance(value, FormulaValue):
        return _format_formula(value, cell, num_fmt)
    if cell_type == CellType.RICHTEXT and isinstance(value, RichTextValue):
        return "".join(html.escape(run.text, quote=True) for run in value.runs)

    return format_plain(cell.raw_value)


def classify(cell: CellRecord) -> Set[CellTag]:
    tags: Set[CellTag] = set()
    if cell.type == CellType.NUMBER:
        tags.add(CellTag.NUMERIC)
    if cell.type == CellType.DATE:
        tags.add(CellTag.DATE)
    if cell.formula:
        tags.add(CellTag.FORMULA)

    alignment = cell.get_style().alignment
    if alignment is not None and alignment.wrap_text:
        tags.add(CellTag.WRAP_TEXT)

    if len(format_cell_value(cell)) > LONG_TEXT_THRESHOLD:
        tags.add(CellTag.LONG_TEXT)

    if cell.is_merged:
        tags.add(CellTag.MERGED)
    return tags


# =============================================================================
# VISUAL STYLE
# =============================================================================

def color_to_hex(color: Optional[ColorSpec]) -> Optional[str]:
    """Hex "#RRGGBB" from an ARGB or RGB color; theme colors are not resolved."""
    if color is None:
        return None
    if color.argb:
        return f"#{color.argb[2:]}"
    if color.rgb:
        return f"#{color.rgb}"
    return None


def _fill_color(style: StyleDescriptor) -> Optional[str]:
    fill = style.fill
    if fill is None:
        return None
    if fill.type == "pattern" and fill.pattern == "solid":
        return color_to_hex(fill.fg_color)
    if fill.type == "gradient" and fill.stops:
        # Gradients are shown as their first stop
        return color_to_hex(fill.stops[0].color)
    return None


def _defaults_to_right(num_fmt: Optional[str]) -> bool:
    if not num_fmt:
        return False
    return "%" in num_fmt or any(glyph in num_fmt for glyph, _ in CURRENCY_GLYPHS)


def visual_style(cell: CellRecord) -> VisualStyle:
    style = cell.get_style()
    attrs: dict = {}

    font = style.font
    if font is not None:
        attrs.update(
            bold=font.bold,
            italic=font.italic,
            underline=font.underline,
            strike=font.strike,
            font_size=font.size or None,
            font_family=font.name or None,
            color=color_to_hex(font.color),
        )

    attrs["background_color"] = _fill_color(style)

    alignment = style.alignment
    if alignment is not None:
        attrs.update(
            horizontal=alignment.horizontal,
            vertical=alignment.vertical,
            wrap_text=alignment.wrap_text,
            indent=alignment.indent * INDENT_UNIT if alignment.indent else None,
        )

    if not attrs.get("horizontal") and _defaults_to_right(style.num_fmt):
        attrs["horizontal"] = "right"

    return VisualStyle(**attrs)
