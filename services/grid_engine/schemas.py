"""Pydantic schemas for the canonical grid model.

Every decoder produces these structures and every consumer (formatting,
viewport, selection, HTTP surface) reads them:
- Cell values as a closed, tagged variant
- Style snapshots (font, fill, alignment, borders, number format)
- Merge information for master and covered cells
- Sheets, workbooks and parse metadata
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, computed_field, model_validator


class CellType(str, Enum):
    """Display type tag of a cell, always derived from its value variant."""
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    STRING = "string"
    FORMULA = "formula"
    RICHTEXT = "richtext"
    DEFAULT = "default"


# =============================================================================
# STYLES
# =============================================================================

class ColorSpec(BaseModel):
    """A color as stored in the source file."""
    model_config = ConfigDict(frozen=True)

    argb: Optional[str] = None  # 8 hex digits, alpha first e.g. "FFFF0000"
    rgb: Optional[str] = None  # 6 hex digits e.g. "FF0000"
    theme: Optional[int] = None
    tint: Optional[float] = None

    @classmethod
    def from_hex(cls, code: Optional[str]) -> Optional["ColorSpec"]:
        if not code:
            return None
        code = code.lstrip("#").upper()
        if len(code) == 8:
            return cls(argb=code)
        return cls(rgb=code)


class CellFont(BaseModel):
    """Font styling for a cell or a rich-text run."""
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    size: Optional[float] = None
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    color: Optional[ColorSpec] = None
    vert_align: Optional[str] = None  # "superscript" | "subscript"


class GradientStop(BaseModel):
    model_config = ConfigDict(frozen=True)

    position: float = 0.0
    color: Optional[ColorSpec] = None


class CellFill(BaseModel):
    """Background fill: a pattern fill or a gradient with ordered stops."""
    model_config = ConfigDict(frozen=True)

    type: Literal["pattern", "gradient"] = "pattern"
    pattern: Optional[str] = None  # "solid", "none", "gray125", ...
    fg_color: Optional[ColorSpec] = None
    bg_color: Optional[ColorSpec] = None
    gradient_type: Optional[str] = None  # "linear" | "path"
    degree: Optional[float] = None
    stops: Tuple[GradientStop, ...] = ()


class CellAlignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    horizontal: Optional[str] = None  # "left", "center", "right", ...
    vertical: Optional[str] = None  # "top", "middle", "bottom"
    wrap_text: bool = False
    indent: Optional[int] = None
    text_rotation: Optional[int] = None


class CellBorder(BaseModel):
    """Border for a single edge."""
    model_config = ConfigDict(frozen=True)

    style: Optional[str] = None  # "thin", "medium", "dashed", ...
    color: Optional[ColorSpec] = None


class CellBorders(BaseModel):
    model_config = ConfigDict(frozen=True)

    top: Optional[CellBorder] = None
    bottom: Optional[CellBorder] = None
    left: Optional[CellBorder] = None
    right: Optional[CellBorder] = None
    diagonal: Optional[CellBorder] = None


class StyleDescriptor(BaseModel):
    """Immutable style snapshot attached to a cell."""
    model_config = ConfigDict(frozen=True)

    font: Optional[CellFont] = None
    fill: Optional[CellFill] = None
    alignment: Optional[CellAlignment] = None
    border: Optional[CellBorders] = None
    num_fmt: Optional[str] = None  # Format code like "0.00%" or "yyyy-mm-dd"


StyleTransform = Callable[[StyleDescriptor], StyleDescriptor]


# =============================================================================
# CELL VALUES
# =============================================================================

class NumberValue(BaseModel):
    kind: Literal["number"] = "number"
    number: Union[int, float]

    def plain(self) -> Any:
        return self.number


class BoolValue(BaseModel):
    kind: Literal["boolean"] = "boolean"
    flag: bool

    def plain(self) -> Any:
        return self.flag


class TextValue(BaseModel):
    kind: Literal["string"] = "string"
    text: str

    def plain(self) -> Any:
        return self.text


class DateValue(BaseModel):
    """A date as a native datetime, a spreadsheet serial day-count or a date string."""
    kind: Literal["date"] = "date"
    moment: Union[datetime, float, str]

    def plain(self) -> Any:
        return self.moment


class ErrorValue(BaseModel):
    """A spreadsheet error literal such as "#DIV/0!"."""
    kind: Literal["error"] = "error"
    error: str

    def plain(self) -> Any:
        return self.error


class EmptyValue(BaseModel):
    """A position inside the populated rectangle that holds nothing."""
    kind: Literal["empty"] = "empty"

    def plain(self) -> Any:
        return None


FormulaResult = Annotated[
    Union[NumberValue, BoolValue, TextValue, DateValue, ErrorValue],
    Field(discriminator="kind"),
]


class FormulaValue(BaseModel):
    """A formula with its cached result, if the source file stored one."""
    kind: Literal["formula"] = "formula"
    formula: str
    result: Optional[FormulaResult] = None

    def plain(self) -> Any:
        return self.result.plain() if self.result is not None else None


class RichTextRun(BaseModel):
    text: str = ""
    font: Optional[CellFont] = None


class RichTextValue(BaseModel):
    kind: Literal["richtext"] = "richtext"
    runs: List[RichTextRun] = []

    def plain(self) -> Any:
        return "".join(run.text for run in self.runs)


CellValue = Annotated[
    Union[
        NumberValue,
        BoolValue,
        TextValue,
        DateValue,
        FormulaValue,
        RichTextValue,
        ErrorValue,
        EmptyValue,
    ],
    Field(discriminator="kind"),
]

TYPE_BY_KIND: Dict[str, CellType] = {
    "number": CellType.NUMBER,
    "boolean": CellType.BOOLEAN,
    "date": CellType.DATE,
    "string": CellType.STRING,
    "formula": CellType.FORMULA,
    "richtext": CellType.RICHTEXT,
    "error": CellType.DEFAULT,
    "empty": CellType.DEFAULT,
}


# =============================================================================
# MERGES
# =============================================================================

class CellCoord(BaseModel):
    """1-based sheet coordinate."""
    model_config = ConfigDict(frozen=True)

    row: int
    col: int


class MergeMaster(BaseModel):
    """Merge info on the top-left cell of a merge group."""
    is_merged: Literal[True] = True
    rowspan: int = Field(default=1, ge=1)
    colspan: int = Field(default=1, ge=1)


class MergeCovered(BaseModel):
    """Merge info on a cell hidden under a master cell."""
    hidden: Literal[True] = True
    master_cell: CellCoord


MergeInfo = Union[MergeMaster, MergeCovered]


# =============================================================================
# CELLS
# =============================================================================

class CellRecord(BaseModel):
    """A single cell of a sheet grid.

    The type tag is computed from the value variant. The style accessor
    applies the registered style transforms, in order, over a copy of the
    base style.
    """
    address: str  # e.g. "B2"
    row: int  # 1-based sheet row
    col: int  # 1-based sheet column
    value: CellValue = Field(default_factory=EmptyValue)
    style: Optional[StyleDescriptor] = None
    formula: Optional[str] = None  # Without the leading '='
    merge: Optional[MergeInfo] = None

    _style_transforms: Tuple[StyleTransform, ...] = PrivateAttr(default=())

    @computed_field  # type: ignore[prop-decorator]
    @property
    def type(self) -> CellType:
        return TYPE_BY_KIND[self.value.kind]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def hidden(self) -> bool:
        return isinstance(self.merge, MergeCovered)

    @property
    def is_merged(self) -> bool:
        return isinstance(self.merge, MergeMaster)

    @property
    def rowspan(self) -> int:
        return self.merge.rowspan if isinstance(self.merge, MergeMaster) else 1

    @property
    def colspan(self) -> int:
        return self.merge.colspan if isinstance(self.merge, MergeMaster) else 1

    @property
    def master_cell(self) -> Optional[CellCoord]:
        return self.merge.master_cell if isinstance(self.merge, MergeCovered) else None

    @property
    def raw_value(self) -> Any:
        """The plain Python value held by the variant."""
        return self.value.plain()

    @property
    def style_transforms(self) -> Tuple[StyleTransform, ...]:
        return self._style_transforms

    def add_style_transform(self, transform: StyleTransform) -> "CellRecord":
        # The tuple is replaced, never extended in place, so clones keep theirs.
        self._style_transforms = self._style_transforms + (transform,)
        return self

    def clear_style_transforms(self) -> "CellRecord":
        self._style_transforms = ()
        return self

    def get_style(self) -> StyleDescriptor:
        style = self.style.model_copy(deep=True) if self.style is not None else StyleDescriptor()
        for transform in self._style_transforms:
            style = transform(style)
        return style

    def clone(self) -> "CellRecord":
        cloned = self.model_copy(deep=True)
        cloned._style_transforms = self._style_transforms
        return cloned


def font_transform(**changes: Any) -> StyleTransform:
    """Build a transform that overrides font fields, e.g. ``font_transform(bold=True)``."""

    def apply(style: StyleDescriptor) -> StyleDescriptor:
        font = style.font or CellFont()
        return style.model_copy(update={"font": font.model_copy(update=changes)})

    return apply


def fill_transform(rgb: str) -> StyleTransform:
    """Build a transform that paints a solid background."""
    color = ColorSpec.from_hex(rgb)

    def apply(style: StyleDescriptor) -> StyleDescriptor:
        return style.model_copy(update={"fill": CellFill(type="pattern", pattern="solid", fg_color=color)})

    return apply


def alignment_transform(**changes: Any) -> StyleTransform:
    def apply(style: StyleDescriptor) -> StyleDescriptor:
        alignment = style.alignment or CellAlignment()
        return style.model_copy(update={"alignment": alignment.model_copy(update=changes)})

    return apply


# =============================================================================
# SHEETS AND WORKBOOKS
# =============================================================================

class SheetDimensions(BaseModel):
    """Populated range, 1-based and inclusive."""
    top: int
    bottom: int
    left: int
    right: int


class SheetRecord(BaseModel):
    """A worksheet as a row-major grid of cells."""
    name: str
    data: List[List[CellRecord]] = []
    dimensions: Optional[SheetDimensions] = None
    is_hidden: bool = False

    @model_validator(mode="after")
    def _check_unique_addresses(self) -> "SheetRecord":
        seen: set[str] = set()
        for row in self.data:
            for cell in row:
                if cell.address in seen:
                    raise ValueError(f"Duplicate cell address in sheet {self.name!r}: {cell.address}")
                seen.add(cell.address)
        return self

    @property
    def row_count(self) -> int:
        return len(self.data)

    @property
    def col_count(self) -> int:
        return max((len(row) for row in self.data), default=0)

    def get_cell(self, row_index: int, col_index: int) -> Optional[CellRecord]:
        """Get a cell by 0-based grid position."""
        if 0 <= row_index < len(self.data):
            row = self.data[row_index]
            if 0 <= col_index < len(row):
                return row[col_index]
        return None

    def get_cell_by_address(self, address: str) -> Optional[CellRecord]:
        """Get a cell by reference (e.g., 'A1')."""
        address = address.upper()
        for row in self.data:
            for cell in row:
                if cell.address == address:
                    return cell
        return None


class WorkbookRecord(BaseModel):
    """Ordered sheets plus the index of the sheet shown first."""
    sheets: List[SheetRecord] = []
    active_sheet_index: int = 0

    @model_validator(mode="after")
    def _check_active_index(self) -> "WorkbookRecord":
        if self.sheets:
            if not 0 <= self.active_sheet_index < len(self.sheets):
                raise ValueError(
                    f"active_sheet_index {self.active_sheet_index} out of range for {len(self.sheets)} sheets"
                )
        elif self.active_sheet_index != 0:
            raise ValueError("active_sheet_index must be 0 for a workbook without sheets")
        return self

    @property
    def active_sheet(self) -> Optional[SheetRecord]:
        return self.get_sheet_by_index(self.active_sheet_index)

    def get_sheet(self, name: str) -> Optional[SheetRecord]:
        """Get a sheet by name."""
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None

    def get_sheet_by_index(self, index: int) -> Optional[SheetRecord]:
        if 0 <= index < len(self.sheets):
            return self.sheets[index]
        return None


class ParseMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_name: str
    file_size: int  # bytes
    sheet_count: int
    parse_time: float  # milliseconds


class ParseResult(BaseModel):
    workbook: WorkbookRecord
    metadata: ParseMetadata
