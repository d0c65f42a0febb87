"""Builds small XLSX containers in memory for the parser and API tests."""

import io
import zipfile
from typing import Optional, Sequence, Tuple

MAIN_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
DOC_REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"

# (name, worksheet body or None to leave the part out, state or None)
SheetSpec = Tuple[str, Optional[str], Optional[str]]

STYLES_XML = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<styleSheet xmlns="{MAIN_NS}">
  <numFmts count="2">
    <numFmt numFmtId="164" formatCode="0.00%"/>
    <numFmt numFmtId="165" formatCode="yyyy-mm-dd"/>
  </numFmts>
  <fonts count="2">
    <font><sz val="11"/><color theme="1"/><name val="Calibri"/></font>
    <font><b/><i/><sz val="14"/><color rgb="FFFF0000"/><name val="Arial"/></font>
  </fonts>
  <fills count="4">
    <fill><patternFill patternType="none"/></fill>
    <fill><patternFill patternType="gray125"/></fill>
    <fill><patternFill patternType="solid"><fgColor rgb="FF00FF00"/><bgColor indexed="64"/></patternFill></fill>
    <fill><gradientFill degree="90"><stop position="0"><color rgb="FF0000FF"/></stop><stop position="1"><color rgb="FFFFFFFF"/></stop></gradientFill></fill>
  </fills>
  <borders count="2">
    <border><left/><right/><top/><bottom/><diagonal/></border>
    <border><left style="thin"><color indexed="8"/></left><right/><top/><bottom style="double"><color rgb="FF112233"/></bottom><diagonal/></border>
  </borders>
  <cellXfs count="7">
    <xf numFmtId="0" fontId="0" fillId="0" borderId="0"/>
    <xf numFmtId="164" fontId="0" fillId="0" borderId="0" applyNumberFormat="1"/>
    <xf numFmtId="165" fontId="0" fillId="0" borderId="0" applyNumberFormat="1"/>
    <xf numFmtId="0" fontId="1" fillId="2" borderId="1" applyFont="1" applyFill="1" applyAlignment="1">
      <alignment horizontal="center" vertical="center" wrapText="1" indent="2"/>
    </xf>
    <xf numFmtId="14" fontId="0" fillId="0" borderId="0" applyNumberFormat="1"/>
    <xf numFmtId="0" fontId="0" fillId="3" borderId="0" applyFill="1"/>
    <xf numFmtId="4" fontId="0" fillId="0" borderId="0" applyNumberFormat="1"/>
  </cellXfs>
</styleSheet>
"""


def worksheet(body: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<worksheet xmlns="{MAIN_NS}" xmlns:r="{DOC_REL_NS}">{body}</worksheet>'
    )


def build_xlsx(
    sheets: Sequence[SheetSpec],
    shared_strings: Sequence[str] = (),
    styles: Optional[str] = STYLES_XML,
    active_tab: Optional[int] = None,
    date1904: bool = False,
) -> bytes:
    """Zip up a workbook.

    ``shared_strings`` are raw ``<si>`` inner XML snippets, e.g. ``"<t>Name</t>"``.
    """
    sheet_entries = []
    rels = []
    for i, (name, _, state) in enumerate(sheets, start=1):
        state_attr = f' state="{state}"' if state else ""
        sheet_entries.append(f'<sheet name="{name}" sheetId="{i}" r:id="rId{i}"{state_attr}/>')
        rels.append(
            f'<Relationship Id="rId{i}" Type="{DOC_REL_NS}/worksheet" Target="worksheets/sheet{i}.xml"/>'
        )

    book_views = ""
    if active_tab is not None:
        book_views = f'<bookViews><workbookView activeTab="{active_tab}"/></bookViews>'

    workbook_pr = '<workbookPr date1904="1"/>' if date1904 else ""

    workbook_xml = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<workbook xmlns="{MAIN_NS}" xmlns:r="{DOC_REL_NS}">'
        f'{workbook_pr}{book_views}<sheets>{"".join(sheet_entries)}</sheets></workbook>'
    )

    if styles is not None:
        rels.append(f'<Relationship Id="rIdStyles" Type="{DOC_REL_NS}/styles" Target="styles.xml"/>')
    if shared_strings:
        rels.append(
            f'<Relationship Id="rIdStrings" Type="{DOC_REL_NS}/sharedStrings" Target="sharedStrings.xml"/>'
        )

    rels_xml = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<Relationships xmlns="{PKG_REL_NS}">{"".join(rels)}</Relationships>'
    )

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("xl/workbook.xml", workbook_xml)
        zf.writestr("xl/_rels/workbook.xml.rels", rels_xml)
        if styles is not None:
            zf.writestr("xl/styles.xml", styles)
        if shared_strings:
            items = "".join(f"<si>{si}</si>" for si in shared_strings)
            zf.writestr(
                "xl/sharedStrings.xml",
                f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><sst xmlns="{MAIN_NS}">{items}</sst>',
            )
        for i, (_, body, _) in enumerate(sheets, start=1):
            if body is not None:
                zf.writestr(f"xl/worksheets/sheet{i}.xml", worksheet(body))
    return buffer.getvalue()


SAMPLE_SHARED_STRINGS = [
    "<t>Name</t>",
    "<t>  Padded  </t>",
    '<r><rPr><b/><color rgb="FFFF0000"/><rFont val="Arial"/></rPr><t>Bold</t></r>'
    '<r><t xml:space="preserve"> &amp; plain</t></r>',
]

SAMPLE_DATA_SHEET = """
<sheetData>
  <row r="1">
    <c r="A1" t="s"><v>0</v></c>
    <c r="B1" s="3" t="s"><v>1</v></c>
    <c r="C1" t="s"><v>2</v></c>
    <c r="D1" t="inlineStr"><is><t>inline</t></is></c>
  </row>
  <row r="2">
    <c r="A2"><v>42</v></c>
    <c r="B2" s="1"><v>0.1234</v></c>
    <c r="C2" s="2"><v>44197</v></c>
    <c r="D2" t="b"><v>1</v></c>
  </row>
  <row r="3">
    <c r="A3"><v>2.5</v></c>
    <c r="B3" t="e"><f>A2/0</f><v>#DIV/0!</v></c>
    <c r="C3" t="str"><f>CONCAT("a","b")</f><v>ab</v></c>
    <c r="D3" s="6"><v>1234567.891</v></c>
  </row>
  <row r="4">
    <c r="A4"><f t="shared" ref="A4:A6" si="0">A2*2</f><v>84</v></c>
  </row>
  <row r="5">
    <c r="A5"><f t="shared" si="0"/><v>5</v></c>
  </row>
  <row r="6">
    <c r="A6"><f t="shared" si="0"/><v>0</v></c>
    <c r="E6" s="5"/>
  </row>
</sheetData>
<mergeCells count="1"><mergeCell ref="B5:C6"/></mergeCells>
"""

SAMPLE_NOTES_SHEET = """
<sheetData>
  <row r="2"><c r="B2"><v>1</v></c></row>
</sheetData>
<mergeCells count="1"><mergeCell ref="B2:C3"/></mergeCells>
"""


def sample_workbook_bytes() -> bytes:
    """Two visible sheets plus a hidden one; the second sheet is the active tab."""
    return build_xlsx(
        [
            ("Data", SAMPLE_DATA_SHEET, None),
            ("Notes", SAMPLE_NOTES_SHEET, None),
            ("Secret", "<sheetData/>", "hidden"),
        ],
        shared_strings=SAMPLE_SHARED_STRINGS,
        active_tab=1,
    )
