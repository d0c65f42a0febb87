"""API routes for viewing spreadsheets.

- Upload XLSX/CSV -> parse into the grid model
- Switch the active sheet
- Fetch the rendered rows of the visible viewport
- Resolve a range selection to clipboard text
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from services.grid_engine import (
    GridEngineError,
    NoStrategyError,
    ParseError,
    ScrollState,
    SelectionController,
    SheetRecord,
    SpreadsheetViewer,
    ValidationError,
    ViewportController,
    VisibleRange,
    classify,
    format_cell_value,
    visual_style,
)
from services.settings import get_viewer_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/spreadsheets", tags=["spreadsheets"])


@dataclass
class _Session:
    viewer: SpreadsheetViewer
    viewport: ViewportController
    selection: SelectionController


# In-memory storage for open spreadsheets
_sessions: dict[str, _Session] = {}


# =============================================================================
# MODELS
# =============================================================================

class ActiveSheetRequest(BaseModel):
    index: int = Field(ge=0)


class ViewportRequest(BaseModel):
    """Scroll position and container geometry, in pixels."""
    scroll_top: float = Field(default=0, ge=0)
    scroll_left: float = Field(default=0, ge=0)
    container_height: float = Field(gt=0)
    container_width: float = Field(default=0, ge=0)
    row_height: Optional[float] = Field(default=None, gt=0)
    column_width: Optional[float] = Field(default=None, gt=0)
    overscan: Optional[int] = Field(default=None, ge=0)


class SelectionRequest(BaseModel):
    """Drag from anchor to focus, 0-based grid coordinates."""
    anchor_row: int
    anchor_col: int
    focus_row: Optional[int] = None
    focus_col: Optional[int] = None


# =============================================================================
# HELPERS
# =============================================================================

def _http_error(e: GridEngineError) -> HTTPException:
    if isinstance(e, ValidationError):
        status = 413 if e.code == ValidationError.FILE_TOO_LARGE else 400
        return HTTPException(status, {"code": e.code, "message": e.message})
    if isinstance(e, NoStrategyError):
        return HTTPException(415, str(e))
    if isinstance(e, ParseError):
        return HTTPException(422, str(e))
    return HTTPException(500, str(e))


def _get_session(spreadsheet_id: str) -> _Session:
    session = _sessions.get(spreadsheet_id)
    if session is None:
        raise HTTPException(404, "Spreadsheet not found")
    return session


def _active_sheet(session: _Session) -> SheetRecord:
    sheet = session.viewer.active_sheet
    if sheet is None:
        raise HTTPException(404, "Spreadsheet has no sheets")
    return sheet


def _sync_dimensions(session: _Session) -> None:
    sheet = session.viewer.active_sheet
    rows = sheet.row_count if sheet else 0
    cols = sheet.col_count if sheet else 0
    session.viewport.update_dimensions(rows, cols)
    session.selection.update_dimensions(rows, cols)
    session.selection.clear_selection()


def _workbook_summary(session: _Session, spreadsheet_id: str) -> dict:
    result = session.viewer.parse_result
    sheets = []
    for i, sheet in enumerate(result.workbook.sheets):
        sheets.append({
            "index": i,
            "name": sheet.name,
            "hidden": sheet.is_hidden,
            "row_count": sheet.row_count,
            "col_count": sheet.col_count,
            "dimensions": sheet.dimensions.model_dump() if sheet.dimensions else None,
        })
    return {
        "id": spreadsheet_id,
        "metadata": result.metadata.model_dump(),
        "active_sheet_index": session.viewer.active_sheet_index,
        "sheets": sheets,
    }


def _render_rows(sheet: SheetRecord, visible: VisibleRange) -> list[dict]:
    rows = []
    if visible.is_empty:
        return rows
    for r in range(visible.start_row, visible.end_row + 1):
        cells = []
        for cell in sheet.data[r]:
            if cell.hidden:
                master = cell.master_cell
                cells.append({
                    "address": cell.address,
                    "hidden": True,
                    "master": {"row": master.row, "col": master.col} if master else None,
                })
                continue
            cells.append({
                "address": cell.address,
                "type": cell.type.value,
                "text": format_cell_value(cell),
                "tags": sorted(tag.value for tag in classify(cell)),
                "style": visual_style(cell).model_dump(exclude_defaults=True),
                "rowspan": cell.rowspan,
                "colspan": cell.colspan,
            })
        rows.append({"index": r, "cells": cells})
    return rows


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/", response_model=dict)
async def upload_spreadsheet(file: UploadFile = File(...)):
    """Upload an XLSX or CSV file and parse it.

    Returns a summary of the workbook; cell contents are fetched per viewport.
    """
    if not file.filename:
        raise HTTPException(400, "No filename provided")

    settings = get_viewer_settings()
    viewer = SpreadsheetViewer(max_file_size=settings.max_upload_bytes)
    content = await file.read()

    try:
        await viewer.load_file(file.filename, content)
    except GridEngineError as e:
        viewer.destroy()
        raise _http_error(e) from e

    spreadsheet_id = uuid.uuid4().hex[:12]
    state = ScrollState(
        row_height=settings.row_height,
        column_width=settings.column_width,
        overscan=settings.overscan,
    )
    session = _Session(
        viewer=viewer,
        viewport=ViewportController(
            viewer.events,
            state,
            debounce_seconds=settings.scroll_debounce_seconds,
        ),
        selection=SelectionController(viewer.events),
    )
    _sync_dimensions(session)
    _sessions[spreadsheet_id] = session
    logger.info("Opened spreadsheet %s (%s)", spreadsheet_id, file.filename)

    return _workbook_summary(session, spreadsheet_id)


@router.get("/{spreadsheet_id}")
async def get_spreadsheet(spreadsheet_id: str):
    session = _get_session(spreadsheet_id)
    return _workbook_summary(session, spreadsheet_id)


@router.delete("/{spreadsheet_id}")
async def close_spreadsheet(spreadsheet_id: str):
    session = _get_session(spreadsheet_id)
    session.viewport.destroy()
    session.viewer.destroy()
    del _sessions[spreadsheet_id]
    return {"id": spreadsheet_id, "closed": True}


@router.put("/{spreadsheet_id}/active-sheet")
async def set_active_sheet(spreadsheet_id: str, payload: ActiveSheetRequest):
    session = _get_session(spreadsheet_id)
    try:
        session.viewer.set_active_sheet(payload.index)
    except IndexError as e:
        raise HTTPException(404, str(e)) from e
    _sync_dimensions(session)
    return _workbook_summary(session, spreadsheet_id)


@router.post("/{spreadsheet_id}/viewport")
async def get_viewport(spreadsheet_id: str, payload: ViewportRequest):
    """Visible row window for the given scroll position, with rendered cells."""
    session = _get_session(spreadsheet_id)
    sheet = _active_sheet(session)

    state = session.viewport.state
    if payload.row_height is not None:
        state.row_height = payload.row_height
    if payload.column_width is not None:
        state.column_width = payload.column_width
    if payload.overscan is not None:
        state.overscan = payload.overscan

    session.viewport.handle_scroll(
        payload.scroll_top,
        payload.scroll_left,
        container_height=payload.container_height,
        container_width=payload.container_width,
    )
    visible = session.viewport.flush()

    return {
        "sheet": sheet.name,
        "total_rows": sheet.row_count,
        "total_cols": sheet.col_count,
        "visible_range": visible.to_dict(),
        "rows": _render_rows(sheet, visible),
    }


@router.post("/{spreadsheet_id}/selection")
async def select_range(spreadsheet_id: str, payload: SelectionRequest):
    """Select from anchor to focus and return the clipboard text of the range."""
    session = _get_session(spreadsheet_id)
    sheet = _active_sheet(session)
    selection = session.selection

    if not selection.pointer_down(payload.anchor_row, payload.anchor_col):
        raise HTTPException(400, "Anchor is outside the sheet")
    if payload.focus_row is not None and payload.focus_col is not None:
        if not selection.pointer_move(payload.focus_row, payload.focus_col):
            selection.pointer_up()
            raise HTTPException(400, "Focus is outside the sheet")
    selection.pointer_up()

    bounds = selection.selection_bounds()
    return {
        "bounds": {
            "start_row": bounds.start_row,
            "end_row": bounds.end_row,
            "start_col": bounds.start_col,
            "end_col": bounds.end_col,
        },
        "text": selection.serialize(sheet, format_cell_value),
    }
