"""Grid Engine - spreadsheet ingestion and presentation support.

This module handles:
1. Decoding XLSX and CSV files into one canonical grid model
2. Formatting cell values, tags and visual style for display
3. Virtual scrolling and range selection over large grids
"""

from .events import EventBus, Events
from .exceptions import GridEngineError, NoStrategyError, ParseError, ValidationError
from .formatter import CellTag, VisualStyle, classify, format_cell_value, visual_style
from .loader import FileLoader
from .parsers import FormatHandler, ParserRegistry, default_registry, run_parse_pipeline
from .references import col_index_to_letter, col_letter_to_index, make_address, parse_cell_ref, parse_range_ref
from .schemas import (
    # Model
    CellRecord,
    CellType,
    SheetRecord,
    SheetDimensions,
    WorkbookRecord,
    ParseMetadata,
    ParseResult,
    # Values
    NumberValue,
    BoolValue,
    TextValue,
    DateValue,
    FormulaValue,
    RichTextRun,
    RichTextValue,
    ErrorValue,
    EmptyValue,
    # Merges
    CellCoord,
    MergeMaster,
    MergeCovered,
    # Styles
    StyleDescriptor,
    CellFont,
    CellFill,
    CellAlignment,
    CellBorder,
    CellBorders,
    ColorSpec,
    GradientStop,
    font_transform,
    fill_transform,
    alignment_transform,
)
from .selection import SelectionBounds, SelectionController, SelectionMode
from .viewer import SpreadsheetViewer
from .viewport import ScrollState, ViewportController, VisibleRange

__all__ = [
    # Model
    "CellRecord",
    "CellType",
    "SheetRecord",
    "SheetDimensions",
    "WorkbookRecord",
    "ParseMetadata",
    "ParseResult",
    "NumberValue",
    "BoolValue",
    "TextValue",
    "DateValue",
    "FormulaValue",
    "RichTextRun",
    "RichTextValue",
    "ErrorValue",
    "EmptyValue",
    "CellCoord",
    "MergeMaster",
    "MergeCovered",
    "StyleDescriptor",
    "CellFont",
    "CellFill",
    "CellAlignment",
    "CellBorder",
    "CellBorders",
    "ColorSpec",
    "GradientStop",
    "font_transform",
    "fill_transform",
    "alignment_transform",
    # Parsing
    "FormatHandler",
    "ParserRegistry",
    "default_registry",
    "run_parse_pipeline",
    "col_index_to_letter",
    "col_letter_to_index",
    "make_address",
    "parse_cell_ref",
    "parse_range_ref",
    # Errors
    "GridEngineError",
    "ValidationError",
    "ParseError",
    "NoStrategyError",
    # Formatting
    "CellTag",
    "VisualStyle",
    "format_cell_value",
    "classify",
    "visual_style",
    # Interaction
    "ScrollState",
    "VisibleRange",
    "ViewportController",
    "SelectionBounds",
    "SelectionController",
    "SelectionMode",
    # Host
    "EventBus",
    "Events",
    "FileLoader",
    "SpreadsheetViewer",
]
