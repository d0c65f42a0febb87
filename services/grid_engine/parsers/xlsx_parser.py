"""XLSX decoder - builds the canonical grid model from a spreadsheet container.

Handles:
- Multiple worksheets, hidden sheets and the active tab
- Shared, inline and rich-text strings
- Fonts, pattern/gradient fills, borders, alignment and number formats
- Dates stored as serial numbers under a date number format (1900 or 1904 system)
- Formulas (including shared formulas) with their cached results
- Merged cells, resolved into master and covered cells
"""

from __future__ import annotations

import logging
import re
import zipfile
from datetime import datetime
from io import BytesIO
from typing import Dict, List, Optional, Tuple, Union
from xml.etree import ElementTree as ET

from ..references import make_address, parse_cell_ref, parse_range_ref, translate_formula
from ..schemas import (
    BoolValue,
    CellAlignment,
    CellBorder,
    CellBorders,
    CellCoord,
    CellFill,
    CellFont,
    CellRecord,
    ColorSpec,
    DateValue,
    EmptyValue,
    ErrorValue,
    FormulaValue,
    GradientStop,
    MergeCovered,
    MergeInfo,
    MergeMaster,
    NumberValue,
    RichTextRun,
    RichTextValue,
    SheetDimensions,
    SheetRecord,
    StyleDescriptor,
    TextValue,
    WorkbookRecord,
)
from .base import FormatHandler

logger = logging.getLogger(__name__)


# =============================================================================
# NAMESPACES AND CONSTANTS
# =============================================================================

NS = {
    "main": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
}

_M = f"{{{NS['main']}}}"

BUILTIN_NUM_FORMATS: Dict[int, str] = {
    0: "General",
    1: "0",
    2: "0.00",
    3: "#,##0",
    4: "#,##0.00",
    9: "0%",
    10: "0.00%",
    11: "0.00E+00",
    12: "# ?/?",
    13: "# ??/??",
    14: "mm-dd-yy",
    15: "d-mmm-yy",
    16: "d-mmm",
    17: "mmm-yy",
    18: "h:mm AM/PM",
    19: "h:mm:ss AM/PM",
    20: "h:mm",
    21: "h:mm:ss",
    22: "m/d/yy h:mm",
    37: "#,##0 ;(#,##0)",
    38: "#,##0 ;[Red](#,##0)",
    39: "#,##0.00;(#,##0.00)",
    40: "#,##0.00;[Red](#,##0.00)",
    45: "mm:ss",
    46: "[h]:mm:ss",
    47: "mmss.0",
    48: "##0.0E+0",
    49: "@",
}

# Built-in ids that are dates even though their code is locale-dependent
_BUILTIN_DATE_IDS = set(range(14, 23)) | set(range(27, 37)) | {45, 46, 47} | set(range(50, 59))

# Days between the 1900 and 1904 date system epochs
DATE1904_OFFSET = 1462

# Default legacy palette for indexed colors (ARGB)
INDEXED_COLORS: List[str] = [
    "FF000000", "FFFFFFFF", "FFFF0000", "FF00FF00", "FF0000FF", "FFFFFF00", "FFFF00FF", "FF00FFFF",
    "FF000000", "FFFFFFFF", "FFFF0000", "FF00FF00", "FF0000FF", "FFFFFF00", "FFFF00FF", "FF00FFFF",
    "FF800000", "FF008000", "FF000080", "FF808000", "FF800080", "FF008080", "FFC0C0C0", "FF808080",
    "FF9999FF", "FF993366", "FFFFFFCC", "FFCCFFFF", "FF660066", "FFFF8080", "FF0066CC", "FFCCCCFF",
    "FF000080", "FFFF00FF", "FFFFFF00", "FF00FFFF", "FF800080", "FF800000", "FF008080", "FF0000FF",
    "FF00CCFF", "FFCCFFFF", "FFCCFFCC", "FFFFFF99", "FF99CCFF", "FFFF99CC", "FFCC99FF", "FFFFCC99",
    "FF3366FF", "FF33CCCC", "FF99CC00", "FFFFCC00", "FFFF9900", "FFFF6600", "FF666699", "FF969696",
    "FF003366", "FF339966", "FF003300", "FF333300", "FF993300", "FF993366", "FF333399", "FF333333",
    "FF000000", "FFFFFFFF",  # 64: system foreground, 65: system background
]

_QUOTED_RE = re.compile(r'"[^"]*"')
_BRACKET_RE = re.compile(r"\[[^\]]*\]")
_ESCAPED_RE = re.compile(r"\\.|_.|\*.")
_ELAPSED_RE = re.compile(r"\[(h+|m+|s+)\]", re.IGNORECASE)


# =============================================================================
# UTILITIES
# =============================================================================

def _read_xml(zf: zipfile.ZipFile, path: str) -> Optional[ET.Element]:
    """Parse an archive member, or return None when the member is absent."""
    try:
        with zf.open(path) as f:
            return ET.parse(f).getroot()
    except KeyError:
        return None


def _flag(el: Optional[ET.Element]) -> bool:
    """Boolean toggle elements like <b/> or <b val="0"/>."""
    if el is None:
        return False
    return el.get("val", "1").lower() not in ("0", "false", "none")


def _resolve_target(target: str, base_dir: str = "xl") -> str:
    if target.startswith("/"):
        return target[1:]
    parts = base_dir.split("/") if base_dir else []
    for piece in target.split("/"):
        if piece == "..":
            if parts:
                parts.pop()
        elif piece and piece != ".":
            parts.append(piece)
    return "/".join(parts)


def _to_number(raw: str) -> Union[int, float]:
    if "." in raw or "E" in raw.upper():
        return float(raw)
    return int(raw)


def is_date_format(code: Optional[str], fmt_id: Optional[int] = None) -> bool:
    """True when a number format renders its value as a date or time."""
    if fmt_id is not None and fmt_id in _BUILTIN_DATE_IDS:
        return True
    if not code or code.lower() == "general":
        return False
    if _ELAPSED_RE.search(code):
        return True
    stripped = _QUOTED_RE.sub("", code)
    stripped = _BRACKET_RE.sub("", stripped)
    stripped = _ESCAPED_RE.sub("", stripped)
    # Only the first (positive) section decides
    stripped = stripped.split(";")[0]
    return any(ch in "dmyhsDMYHS" for ch in stripped)


def _parse_color(el: Optional[ET.Element]) -> Optional[ColorSpec]:
    if el is None:
        return None
    rgb = el.get("rgb")
    if rgb:
        return ColorSpec.from_hex(rgb)
    indexed = el.get("indexed")
    if indexed is not None and indexed.isdigit() and int(indexed) < len(INDEXED_COLORS):
        return ColorSpec(argb=INDEXED_COLORS[int(indexed)])
    theme = el.get("theme")
    if theme is not None:
        tint = el.get("tint")
        return ColorSpec(theme=int(theme), tint=float(tint) if tint else None)
    return None


def _parse_font(font_el: ET.Element) -> CellFont:
    """Parse a <font> from styles.xml or an <rPr> from a rich-text run."""
    name_el = font_el.find(f"{_M}name")
    if name_el is None:
        name_el = font_el.find(f"{_M}rFont")
    size_el = font_el.find(f"{_M}sz")
    vert_el = font_el.find(f"{_M}vertAlign")
    vert_align = vert_el.get("val") if vert_el is not None else None

    return CellFont(
        name=name_el.get("val") if name_el is not None else None,
        size=float(size_el.get("val", 11)) if size_el is not None else None,
        bold=_flag(font_el.find(f"{_M}b")),
        italic=_flag(font_el.find(f"{_M}i")),
        underline=_flag(font_el.find(f"{_M}u")),
        strike=_flag(font_el.find(f"{_M}strike")),
        color=_parse_color(font_el.find(f"{_M}color")),
        vert_align=vert_align if vert_align in ("superscript", "subscript") else None,
    )


# =============================================================================
# SHARED STRINGS
# =============================================================================

def _parse_string_item(si: ET.Element) -> Union[TextValue, RichTextValue]:
    """Parse an <si> or <is> element: plain text or rich-text runs."""
    runs = si.findall(f"{_M}r")
    if not runs:
        t_el = si.find(f"{_M}t")
        return TextValue(text=t_el.text or "" if t_el is not None else "")

    rich_runs: List[RichTextRun] = []
    for r in runs:
        t_el = r.find(f"{_M}t")
        rpr = r.find(f"{_M}rPr")
        rich_runs.append(RichTextRun(
            text=t_el.text or "" if t_el is not None else "",
            font=_parse_font(rpr) if rpr is not None else None,
        ))
    return RichTextValue(runs=rich_runs)


def _parse_shared_strings(zf: zipfile.ZipFile, path: str) -> List[Union[TextValue, RichTextValue]]:
    root = _read_xml(zf, path)
    if root is None:
        return []
    return [_parse_string_item(si) for si in root.findall(f"{_M}si")]


# =============================================================================
# STYLES
# =============================================================================

class StyleTable:
    """Resolves a cell's ``s`` attribute to a shared StyleDescriptor."""

    def __init__(self) -> None:
        self.fonts: List[CellFont] = []
        self.fills: List[Optional[CellFill]] = []
        self.borders: List[Optional[CellBorders]] = []
        self.cell_xfs: List[Dict[str, object]] = []
        self.number_formats: Dict[int, str] = {}
        self._cache: Dict[int, StyleDescriptor] = {}

    def num_fmt_id(self, style_index: int) -> Optional[int]:
        if 0 <= style_index < len(self.cell_xfs):
            return int(self.cell_xfs[style_index]["numFmtId"])  # type: ignore[arg-type]
        return None

    def get(self, style_index: int) -> Optional[StyleDescriptor]:
        if style_index < 0 or style_index >= len(self.cell_xfs):
            return None
        if style_index not in self._cache:
            self._cache[style_index] = self._build(style_index)
        return self._cache[style_index]

    def _build(self, style_index: int) -> StyleDescriptor:
        xf = self.cell_xfs[style_index]
        font_id = int(xf["fontId"])  # type: ignore[arg-type]
        fill_id = int(xf["fillId"])  # type: ignore[arg-type]
        border_id = int(xf["borderId"])  # type: ignore[arg-type]
        num_fmt_id = int(xf["numFmtId"])  # type: ignore[arg-type]

        return StyleDescriptor(
            font=self.fonts[font_id] if font_id < len(self.fonts) else None,
            fill=self.fills[fill_id] if fill_id < len(self.fills) else None,
            border=self.borders[border_id] if border_id < len(self.borders) else None,
            alignment=xf.get("alignment"),  # type: ignore[arg-type]
            num_fmt=self.number_formats.get(num_fmt_id, BUILTIN_NUM_FORMATS.get(num_fmt_id)),
        )


def _parse_fill(fill_el: ET.Element) -> Optional[CellFill]:
    pattern_el = fill_el.find(f"{_M}patternFill")
    if pattern_el is not None:
        return CellFill(
            type="pattern",
            pattern=pattern_el.get("patternType"),
            fg_color=_parse_color(pattern_el.find(f"{_M}fgColor")),
            bg_color=_parse_color(pattern_el.find(f"{_M}bgColor")),
        )

    gradient_el = fill_el.find(f"{_M}gradientFill")
    if gradient_el is not None:
        stops = tuple(
            GradientStop(
                position=float(stop.get("position", 0)),
                color=_parse_color(stop.find(f"{_M}color")),
            )
            for stop in gradient_el.findall(f"{_M}stop")
        )
        degree = gradient_el.get("degree")
        return CellFill(
            type="gradient",
            gradient_type=gradient_el.get("type", "linear"),
            degree=float(degree) if degree else None,
            stops=stops,
        )
    return None


def _parse_border(border_el: ET.Element) -> Optional[CellBorders]:
    edges: Dict[str, CellBorder] = {}
    for side in ("left", "right", "top", "bottom", "diagonal"):
        side_el = border_el.find(f"{_M}{side}")
        if side_el is not None and side_el.get("style"):
            edges[side] = CellBorder(
                style=side_el.get("style"),
                color=_parse_color(side_el.find(f"{_M}color")),
            )
    return CellBorders(**edges) if edges else None


def _parse_alignment(alignment_el: Optional[ET.Element]) -> Optional[CellAlignment]:
    if alignment_el is None:
        return None
    vertical = alignment_el.get("vertical")
    indent = alignment_el.get("indent")
    rotation = alignment_el.get("textRotation")
    return CellAlignment(
        horizontal=alignment_el.get("horizontal"),
        # "center" is presented as "middle", matching the vertical-align vocabulary
        vertical="middle" if vertical == "center" else vertical,
        wrap_text=alignment_el.get("wrapText") in ("1", "true"),
        indent=int(indent) if indent else None,
        text_rotation=int(rotation) if rotation else None,
    )


def _parse_styles(zf: zipfile.ZipFile, path: str) -> StyleTable:
    """Parse styles.xml for cell formatting."""
    table = StyleTable()
    root = _read_xml(zf, path)
    if root is None:
        return table

    num_fmts_el = root.find(f"{_M}numFmts")
    if num_fmts_el is not None:
        for num_fmt in num_fmts_el.findall(f"{_M}numFmt"):
            table.number_formats[int(num_fmt.get("numFmtId", 0))] = num_fmt.get("formatCode", "")

    fonts_el = root.find(f"{_M}fonts")
    if fonts_el is not None:
        table.fonts = [_parse_font(font_el) for font_el in fonts_el.findall(f"{_M}font")]

    fills_el = root.find(f"{_M}fills")
    if fills_el is not None:
        table.fills = [_parse_fill(fill_el) for fill_el in fills_el.findall(f"{_M}fill")]

    borders_el = root.find(f"{_M}borders")
    if borders_el is not None:
        table.borders = [_parse_border(border_el) for border_el in borders_el.findall(f"{_M}border")]

    cell_xfs_el = root.find(f"{_M}cellXfs")
    if cell_xfs_el is not None:
        for xf in cell_xfs_el.findall(f"{_M}xf"):
            table.cell_xfs.append({
                "fontId": int(xf.get("fontId", 0)),
                "fillId": int(xf.get("fillId", 0)),
                "borderId": int(xf.get("borderId", 0)),
                "numFmtId": int(xf.get("numFmtId", 0)),
                "alignment": _parse_alignment(xf.find(f"{_M}alignment")),
            })

    return table


# =============================================================================
# WORKSHEET PARSING
# =============================================================================

def resolve_merges(merge_refs: List[str]) -> Dict[Tuple[int, int], MergeInfo]:
    """Expand merge ranges into per-cell merge info.

    Ranges are processed in declaration order; a cell covered by more than
    one range keeps the assignment of the range declared last.
    """
    merge_map: Dict[Tuple[int, int], MergeInfo] = {}
    for ref in merge_refs:
        start_row, start_col, end_row, end_col = parse_range_ref(ref)
        rowspan = end_row - start_row + 1
        colspan = end_col - start_col + 1
        master = CellCoord(row=start_row, col=start_col)

        for r in range(start_row, end_row + 1):
            for c in range(start_col, end_col + 1):
                if r == start_row and c == start_col:
                    merge_map[(r, c)] = MergeMaster(rowspan=rowspan, colspan=colspan)
                else:
                    merge_map[(r, c)] = MergeCovered(master_cell=master)
    return merge_map


def _parse_merge_refs(sheet_el: ET.Element) -> List[str]:
    merge_cells_el = sheet_el.find(f"{_M}mergeCells")
    if merge_cells_el is None:
        return []
    refs: List[str] = []
    for merge_cell in merge_cells_el.findall(f"{_M}mergeCell"):
        ref = merge_cell.get("ref")
        if not ref:
            continue
        try:
            parse_range_ref(ref)
        except ValueError:
            logger.warning("Skipping malformed merge range %r", ref)
            continue
        refs.append(ref)
    return refs


class _SheetCellReader:
    """Reads <c> elements of one worksheet into cell fields."""

    def __init__(
        self,
        shared_strings: List[Union[TextValue, RichTextValue]],
        styles: StyleTable,
        date1904: bool = False,
    ):
        self.shared_strings = shared_strings
        self.styles = styles
        self.date_offset = DATE1904_OFFSET if date1904 else 0
        self.shared_formulas: Dict[str, Tuple[str, int, int]] = {}

    def read(self, cell_el: ET.Element, row: int, col: int) -> Dict[str, object]:
        style_attr = cell_el.get("s")
        style_index = int(style_attr) if style_attr else 0
        style = self.styles.get(style_index)
        num_fmt_id = self.styles.num_fmt_id(style_index)

        value = self._read_value(cell_el, style.num_fmt if style else None, num_fmt_id)
        formula = self._read_formula(cell_el, row, col)

        if formula is not None:
            result = value if isinstance(value, (NumberValue, BoolValue, TextValue, DateValue, ErrorValue)) else None
            value = FormulaValue(formula=formula, result=result)

        return {"value": value, "style": style, "formula": formula}

    def _read_value(self, cell_el: ET.Element, num_fmt: Optional[str], num_fmt_id: Optional[int]):
        data_type = cell_el.get("t", "n")
        v_el = cell_el.find(f"{_M}v")
        raw_value = v_el.text if v_el is not None else None

        if data_type == "inlineStr":
            is_el = cell_el.find(f"{_M}is")
            return _parse_string_item(is_el) if is_el is not None else EmptyValue()
        if raw_value is None:
            return EmptyValue()

        if data_type == "s":
            index = int(raw_value)
            if index < len(self.shared_strings):
                return self.shared_strings[index]
            logger.warning("Shared string index %d out of range", index)
            return TextValue(text=raw_value)
        if data_type == "b":
            return BoolValue(flag=raw_value.strip() in ("1", "true"))
        if data_type == "e":
            return ErrorValue(error=raw_value)
        if data_type == "str":
            return TextValue(text=raw_value)
        if data_type == "d":
            try:
                return DateValue(moment=datetime.fromisoformat(raw_value))
            except ValueError:
                return DateValue(moment=raw_value)

        number = _to_number(raw_value)
        if is_date_format(num_fmt, num_fmt_id):
            return DateValue(moment=float(number) + self.date_offset)
        return NumberValue(number=number)

    def _read_formula(self, cell_el: ET.Element, row: int, col: int) -> Optional[str]:
        f_el = cell_el.find(f"{_M}f")
        if f_el is None:
            return None

        text = f_el.text
        if f_el.get("t") == "shared":
            si = f_el.get("si")
            if text and si is not None:
                self.shared_formulas[si] = (text, row, col)
            elif si in self.shared_formulas:
                master_text, master_row, master_col = self.shared_formulas[si]
                text = translate_formula(master_text, row - master_row, col - master_col)
        return text or None


def parse_sheet(
    zf: zipfile.ZipFile,
    sheet_path: str,
    sheet_name: str,
    shared_strings: List[Union[TextValue, RichTextValue]],
    styles: StyleTable,
    is_hidden: bool = False,
    date1904: bool = False,
) -> SheetRecord:
    """Parse a single worksheet into a dense grid over its populated rectangle."""
    with zf.open(sheet_path) as f:
        sheet_el = ET.parse(f).getroot()

    reader = _SheetCellReader(shared_strings, styles, date1904=date1904)
    cells: Dict[Tuple[int, int], Dict[str, object]] = {}

    sheet_data = sheet_el.find(f"{_M}sheetData")
    if sheet_data is not None:
        last_row = 0
        for row_el in sheet_data.findall(f"{_M}row"):
            row_num = int(row_el.get("r", last_row + 1))
            last_row = row_num
            last_col = 0
            for cell_el in row_el.findall(f"{_M}c"):
                cell_ref = cell_el.get("r")
                if cell_ref:
                    _, col_num, row_num = parse_cell_ref(cell_ref)
                else:
                    col_num = last_col + 1
                last_col = col_num
                cells[(row_num, col_num)] = reader.read(cell_el, row_num, col_num)

    merge_refs = _parse_merge_refs(sheet_el)

    # Populated rectangle: present cells plus every merge range
    rows = [r for r, _ in cells]
    cols = [c for _, c in cells]
    for ref in merge_refs:
        start_row, start_col, end_row, end_col = parse_range_ref(ref)
        rows += [start_row, end_row]
        cols += [start_col, end_col]

    if not rows:
        return SheetRecord(name=sheet_name, data=[], dimensions=None, is_hidden=is_hidden)

    dimensions = SheetDimensions(
        top=max(1, min(rows)),
        bottom=max(rows),
        left=max(1, min(cols)),
        right=max(cols),
    )
    merge_map = resolve_merges(merge_refs)

    data: List[List[CellRecord]] = []
    for r in range(dimensions.top, dimensions.bottom + 1):
        row_cells: List[CellRecord] = []
        for c in range(dimensions.left, dimensions.right + 1):
            fields = cells.get((r, c), {})
            row_cells.append(CellRecord(
                address=make_address(r, c),
                row=r,
                col=c,
                value=fields.get("value") or EmptyValue(),
                style=fields.get("style"),
                formula=fields.get("formula"),
                merge=merge_map.get((r, c)),
            ))
        data.append(row_cells)

    return SheetRecord(name=sheet_name, data=data, dimensions=dimensions, is_hidden=is_hidden)


# =============================================================================
# WORKBOOK PARSING
# =============================================================================

def _read_relationships(zf: zipfile.ZipFile, path: str) -> Dict[str, Tuple[str, str]]:
    """Map relationship id -> (type, target)."""
    root = _read_xml(zf, path)
    if root is None:
        return {}
    rels: Dict[str, Tuple[str, str]] = {}
    for rel in root.findall(f"{{{NS['rel']}}}Relationship"):
        rel_id = rel.get("Id")
        target = rel.get("Target")
        if rel_id and target:
            rels[rel_id] = (rel.get("Type", ""), target)
    return rels


def _part_path(rels: Dict[str, Tuple[str, str]], type_suffix: str, default: str) -> str:
    for rel_type, target in rels.values():
        if rel_type.endswith(type_suffix):
            return _resolve_target(target)
    return default


def decode_xlsx(data: bytes) -> WorkbookRecord:
    """Decode XLSX bytes into a WorkbookRecord."""
    with zipfile.ZipFile(BytesIO(data), "r") as zf:
        with zf.open("xl/workbook.xml") as f:
            wb_root = ET.parse(f).getroot()

        rels = _read_relationships(zf, "xl/_rels/workbook.xml.rels")
        shared_strings = _parse_shared_strings(zf, _part_path(rels, "/sharedStrings", "xl/sharedStrings.xml"))
        styles = _parse_styles(zf, _part_path(rels, "/styles", "xl/styles.xml"))
        wb_pr = wb_root.find(f"{_M}workbookPr")
        date1904 = wb_pr is not None and wb_pr.get("date1904", "0").lower() in ("1", "true")

        sheets: List[SheetRecord] = []
        sheets_el = wb_root.find(f"{_M}sheets")
        sheet_els = sheets_el.findall(f"{_M}sheet") if sheets_el is not None else []
        for i, sheet in enumerate(sheet_els, start=1):
            name = sheet.get("name") or f"Sheet{i}"
            r_id = sheet.get(f"{{{NS['r']}}}id")
            target = rels.get(r_id, ("", f"worksheets/sheet{i}.xml"))[1] if r_id else f"worksheets/sheet{i}.xml"
            sheet_path = _resolve_target(target)

            if sheet_path not in zf.namelist():
                logger.warning("Worksheet part %s for sheet %r not found; skipping", sheet_path, name)
                continue

            sheets.append(parse_sheet(
                zf,
                sheet_path,
                name,
                shared_strings,
                styles,
                is_hidden=sheet.get("state") in ("hidden", "veryHidden"),
                date1904=date1904,
            ))

        active_sheet = 0
        book_views = wb_root.find(f"{_M}bookViews")
        if book_views is not None:
            wv = book_views.find(f"{_M}workbookView")
            if wv is not None:
                active_sheet = int(wv.get("activeTab", 0))
        if not 0 <= active_sheet < len(sheets):
            active_sheet = 0

    return WorkbookRecord(sheets=sheets, active_sheet_index=active_sheet)


XLSX_HANDLER = FormatHandler(name="xlsx", extensions=(".xlsx", ".xls"), decode=decode_xlsx)
