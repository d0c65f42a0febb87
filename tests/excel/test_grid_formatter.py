"""Tests for cell display formatting, classification and visual style."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path (tests/excel/ -> tests/ -> project root)
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest

from services.grid_engine import (
    BoolValue,
    CellAlignment,
    CellFill,
    CellFont,
    CellRecord,
    CellTag,
    ColorSpec,
    DateValue,
    EmptyValue,
    ErrorValue,
    FormulaValue,
    GradientStop,
    MergeMaster,
    NumberValue,
    RichTextRun,
    RichTextValue,
    StyleDescriptor,
    TextValue,
    VisualStyle,
    classify,
    fill_transform,
    format_cell_value,
    visual_style,
)
from services.grid_engine.formatter import format_date, format_number, format_plain, group_thousands, to_fixed
from services.grid_engine.parsers.xlsx_parser import decode_xlsx
from tests.xlsx_builder import build_xlsx, sample_workbook_bytes


def make_cell(value, num_fmt=None, style=None, **fields):
    if style is None and num_fmt is not None:
        style = StyleDescriptor(num_fmt=num_fmt)
    return CellRecord(address="A1", row=1, col=1, value=value, style=style, **fields)


class TestNumberFormatting:

    @pytest.mark.parametrize("value, num_fmt, expected", [
        (1234.5, None, "1234.5"),
        (3.0, "General", "3"),
        (42, None, "42"),
        (0.1234, "0.00%", "12.34%"),
        (0.5, "0%", "50.00%"),
        (1234.5, '"$"#,##0.00', "$1234.50"),
        (10, "¥#,##0", "¥10.00"),
        (10, "￥#,##0", "¥10.00"),
        (7.5, "€#,##0.00", "€7.50"),
        (3.14159, "0.00", "3.14"),
        (1.005, "0.00", "1.00"),
        (2.25, "0.0", "2.3"),
        (1234567.891, "#,##0", "1,234,567.891"),
        (1234567, "#,##0", "1,234,567"),
        (-1234.5, "#,##0", "-1,234.5"),
        (0.12345, "#,##0", "0.123"),
        (2.5, "0", "2.5"),
    ])
    def test_patterns(self, value, num_fmt, expected):
        assert format_number(value, num_fmt) == expected
        assert format_cell_value(make_cell(NumberValue(number=value), num_fmt)) == expected

    def test_to_fixed_rounds_half_up(self):
        assert to_fixed(0.125, 2) == "0.13"
        assert to_fixed(-0.125, 2) == "-0.13"
        assert to_fixed(5, 2) == "5.00"

    def test_group_thousands_non_finite(self):
        assert group_thousands(float("inf")) == "Infinity"


class TestDateFormatting:

    def test_serial_with_year_pattern(self):
        cell = make_cell(DateValue(moment=44197), "yyyy-mm-dd")
        assert format_cell_value(cell) == "2021-01-01"

    @pytest.mark.parametrize("moment, num_fmt, expected", [
        (44197.5, "hh:mm:ss", "12:00:00"),
        (44197.25, "h:mm", "6:00"),
        (44197.75, "h:mm AM/PM", "18:00"),
        (44197, None, "1/1/2021"),
        (44197, "mm-dd-yy", "1/1/2021"),
        (datetime(2024, 3, 5, 7, 8, 9), None, "3/5/2024"),
        (datetime(2024, 3, 5, 7, 8, 9), "yyyy/mm/dd", "2024-03-05"),
        (datetime(2024, 3, 5, 7, 8, 9), "mm:ss", "07:08:09"),
        ("2024-02-29", None, "2/29/2024"),
        ("2024-02-29T13:05:00", "h:mm", "13:05"),
    ])
    def test_patterns(self, moment, num_fmt, expected):
        assert format_date(moment, num_fmt) == expected

    def test_aware_datetime_uses_utc(self):
        moment = datetime(2021, 1, 1, 23, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert format_date(moment, "yyyy-mm-dd") == "2021-01-02"

    def test_unparsable_returns_original(self):
        assert format_cell_value(make_cell(DateValue(moment="not a date"), "yyyy-mm-dd")) == "not a date"


class TestOtherTypes:

    def test_booleans(self):
        assert format_cell_value(make_cell(BoolValue(flag=True))) == "TRUE"
        assert format_cell_value(make_cell(BoolValue(flag=False))) == "FALSE"

    def test_string_trimmed(self):
        assert format_cell_value(make_cell(TextValue(text="  Padded  "))) == "Padded"

    def test_richtext_escaped(self):
        value = RichTextValue(runs=[RichTextRun(text="<b>"), RichTextRun(text=" & 'x' \"y\"")])
        expected = "&lt;b&gt; &amp; &#x27;x&#x27; &quot;y&quot;"
        assert format_cell_value(make_cell(value)) == expected

    def test_error_and_empty(self):
        assert format_cell_value(make_cell(ErrorValue(error="#N/A"))) == "#N/A"
        assert format_cell_value(make_cell(EmptyValue())) == ""

    @pytest.mark.parametrize("value, expected", [
        (None, ""),
        (True, "TRUE"),
        (3.0, "3"),
        (0.1, "0.1"),
        ("x", "x"),
        ({"text": "a"}, "a"),
        ({"result": 5}, "5"),
        ({"formula": "A1+1"}, "=A1+1"),
        ({}, ""),
    ])
    def test_format_plain(self, value, expected):
        assert format_plain(value) == expected


class TestFormulaFormatting:

    @pytest.mark.parametrize("result, expected", [
        (NumberValue(number=84), "84.00"),
        (NumberValue(number=1 / 3), "0.33"),
        (ErrorValue(error="#DIV/0!"), "#DIV/0!"),
        (TextValue(text="ab"), "ab"),
        (BoolValue(flag=True), "TRUE"),
    ])
    def test_results(self, result, expected):
        cell = make_cell(FormulaValue(formula="X", result=result), formula="X")
        assert format_cell_value(cell) == expected

    def test_date_result_uses_pattern(self):
        cell = make_cell(FormulaValue(formula="TODAY()", result=DateValue(moment=44197.0)), "yyyy-mm-dd")
        assert format_cell_value(cell) == "2021-01-01"

    def test_without_result_shows_formula(self):
        cell = make_cell(FormulaValue(formula="SUM(A1:A2)"), formula="SUM(A1:A2)")
        assert format_cell_value(cell) == "=SUM(A1:A2)"

    def test_without_result_or_text(self):
        assert format_cell_value(make_cell(FormulaValue(formula=""))) == ""


class TestClassify:

    def test_numeric(self):
        assert classify(make_cell(NumberValue(number=1))) == {CellTag.NUMERIC}

    def test_date(self):
        assert classify(make_cell(DateValue(moment=44197.0))) == {CellTag.DATE}

    def test_formula_and_merged(self):
        cell = make_cell(
            FormulaValue(formula="A1", result=TextValue(text="x")),
            formula="A1",
            merge=MergeMaster(rowspan=1, colspan=2),
        )
        assert classify(cell) == {CellTag.FORMULA, CellTag.MERGED}

    def test_wrap_text(self):
        style = StyleDescriptor(alignment=CellAlignment(wrap_text=True))
        assert CellTag.WRAP_TEXT in classify(make_cell(TextValue(text="a"), style=style))

    def test_long_text_threshold(self):
        assert CellTag.LONG_TEXT not in classify(make_cell(TextValue(text="x" * 20)))
        assert CellTag.LONG_TEXT in classify(make_cell(TextValue(text="x" * 21)))

    def test_long_text_uses_formatted_value(self):
        # 5 raw characters, 25 once escaped
        value = RichTextValue(runs=[RichTextRun(text="&&&&&")])
        assert CellTag.LONG_TEXT in classify(make_cell(value))
        # Padding is trimmed before measuring
        assert CellTag.LONG_TEXT not in classify(make_cell(TextValue(text=" " * 30 + "short")))


class TestVisualStyle:

    def test_font(self):
        font = CellFont(name="Arial", size=14, bold=True, italic=True, underline=True, strike=True,
                        color=ColorSpec(argb="FFFF0000"))
        style = visual_style(make_cell(TextValue(text="a"), style=StyleDescriptor(font=font)))
        assert style.bold and style.italic and style.underline and style.strike
        assert style.font_size == 14
        assert style.font_family == "Arial"
        assert style.color == "#FF0000"

    @pytest.mark.parametrize("color, expected", [
        (ColorSpec(argb="80123456"), "#123456"),
        (ColorSpec(rgb="00FF00"), "#00FF00"),
        (ColorSpec(theme=1), None),
    ])
    def test_font_colors(self, color, expected):
        style = StyleDescriptor(font=CellFont(color=color))
        assert visual_style(make_cell(EmptyValue(), style=style)).color == expected

    def test_solid_fill(self):
        fill = CellFill(type="pattern", pattern="solid", fg_color=ColorSpec(argb="FF00FF00"))
        style = visual_style(make_cell(EmptyValue(), style=StyleDescriptor(fill=fill)))
        assert style.background_color == "#00FF00"

    def test_non_solid_pattern_ignored(self):
        fill = CellFill(type="pattern", pattern="gray125", fg_color=ColorSpec(argb="FF00FF00"))
        assert visual_style(make_cell(EmptyValue(), style=StyleDescriptor(fill=fill))).background_color is None

    def test_gradient_uses_first_stop(self):
        fill = CellFill(type="gradient", stops=(
            GradientStop(position=0, color=ColorSpec(argb="FF0000FF")),
            GradientStop(position=1, color=ColorSpec(argb="FFFFFFFF")),
        ))
        style = visual_style(make_cell(EmptyValue(), style=StyleDescriptor(fill=fill)))
        assert style.background_color == "#0000FF"

    def test_alignment_and_indent(self):
        alignment = CellAlignment(horizontal="center", vertical="middle", wrap_text=True, indent=2)
        style = visual_style(make_cell(TextValue(text="a"), style=StyleDescriptor(alignment=alignment)))
        assert style.horizontal == "center"
        assert style.vertical == "middle"
        assert style.wrap_text is True
        assert style.indent == 16

    @pytest.mark.parametrize("num_fmt, expected", [
        ("0.00%", "right"),
        ('"$"#,##0', "right"),
        ("¥0.00", "right"),
        ("0.00", None),
    ])
    def test_default_right_alignment(self, num_fmt, expected):
        assert visual_style(make_cell(NumberValue(number=1), num_fmt)).horizontal == expected

    def test_explicit_alignment_wins(self):
        style = StyleDescriptor(num_fmt="0.00%", alignment=CellAlignment(horizontal="left"))
        assert visual_style(make_cell(NumberValue(number=1), style=style)).horizontal == "left"

    def test_unstyled_cell(self):
        assert visual_style(make_cell(TextValue(text="a"))) == VisualStyle()

    def test_transforms_are_applied(self):
        cell = make_cell(TextValue(text="a"))
        cell.add_style_transform(fill_transform("FFFF00"))
        assert visual_style(cell).background_color == "#FFFF00"


@pytest.fixture(scope="module")
def sheet():
    return decode_xlsx(sample_workbook_bytes()).sheets[0]


class TestDecodedWorkbookDisplay:
    """Display strings for a decoded XLSX, end to end."""

    @pytest.mark.parametrize("address, expected", [
        ("A1", "Name"),
        ("B1", "Padded"),
        ("C1", "Bold &amp; plain"),
        ("A2", "42"),
        ("B2", "12.34%"),
        ("C2", "2021-01-01"),
        ("D2", "TRUE"),
        ("A3", "2.5"),
        ("B3", "#DIV/0!"),
        ("C3", "ab"),
        ("D3", "1234567.89"),
        ("A4", "84.00"),
        ("E1", ""),
    ])
    def test_display(self, sheet, address, expected):
        assert format_cell_value(sheet.get_cell_by_address(address)) == expected

    def test_styled_cell(self, sheet):
        style = visual_style(sheet.get_cell_by_address("B1"))
        assert style.bold
        assert style.color == "#FF0000"
        assert style.background_color == "#00FF00"
        assert style.indent == 16
        assert CellTag.WRAP_TEXT in classify(sheet.get_cell_by_address("B1"))

    def test_gradient_cell(self, sheet):
        assert visual_style(sheet.get_cell_by_address("E6")).background_color == "#0000FF"

    def test_1904_workbook_dates(self):
        body = '<sheetData><row r="1"><c r="A1" s="2"><v>42735</v></c></row></sheetData>'
        sheet = decode_xlsx(build_xlsx([("Mac", body, None)], date1904=True)).sheets[0]
        assert format_cell_value(sheet.get_cell(0, 0)) == "2021-01-01"
