"""Pointer-driven range selection over 0-based grid coordinates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple, Union

from .events import EventBus, Events
from .formatter import format_plain
from .schemas import CellRecord, SheetRecord

logger = logging.getLogger(__name__)

Point = Tuple[int, int]
CellFormatter = Callable[[CellRecord], str]


class SelectionMode(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"


@dataclass(frozen=True)
class SelectionBounds:
    start_row: int
    end_row: int
    start_col: int
    end_col: int

    def contains(self, row: int, col: int) -> bool:
        return self.start_row <= row <= self.end_row and self.start_col <= col <= self.end_col


@dataclass
class SelectionState:
    selected_cell: Optional[Point] = None
    anchor: Optional[Point] = None
    focus: Optional[Point] = None
    mode: SelectionMode = SelectionMode.IDLE


def default_cell_formatter(cell: CellRecord) -> str:
    return format_plain(cell.raw_value)


class SelectionController:
    """Idle/Selecting state machine for a single rectangular selection.

    When grid bounds are known (``update_dimensions``) pointer events outside
    them are ignored like events over non-cells.
    """

    def __init__(self, events: EventBus, total_rows: Optional[int] = None, total_cols: Optional[int] = None):
        self._events = events
        self.state = SelectionState()
        self.total_rows = total_rows
        self.total_cols = total_cols

    @property
    def mode(self) -> SelectionMode:
        return self.state.mode

    def update_dimensions(self, total_rows: Optional[int], total_cols: Optional[int]) -> None:
        self.total_rows = total_rows
        self.total_cols = total_cols

    def _is_valid(self, row: int, col: int) -> bool:
        if row < 0 or col < 0:
            return False
        if self.total_rows is not None and row >= self.total_rows:
            return False
        if self.total_cols is not None and col >= self.total_cols:
            return False
        return True

    def pointer_down(self, row: int, col: int) -> bool:
        """Start a drag selection. Returns False when the target is not a grid cell."""
        if not self._is_valid(row, col):
            return False
        self.state.mode = SelectionMode.SELECTING
        self.state.anchor = (row, col)
        self.state.focus = (row, col)
        self.state.selected_cell = (row, col)
        self._events.emit(Events.CELL_SELECT, {"row": row, "col": col})
        return True

    def pointer_move(self, row: int, col: int) -> bool:
        if self.state.mode is not SelectionMode.SELECTING or self.state.anchor is None:
            return False
        if not self._is_valid(row, col):
            return False
        self.state.focus = (row, col)
        return True

    def pointer_up(self) -> None:
        self.state.mode = SelectionMode.IDLE

    def select_cell(self, row: int, col: int) -> None:
        self.state.selected_cell = (row, col)
        self.state.anchor = (row, col)
        self.state.focus = (row, col)
        self._events.emit(Events.CELL_SELECT, {"row": row, "col": col})

    def is_cell_selected(self, row: int, col: int) -> bool:
        return self.state.selected_cell == (row, col)

    def selection_bounds(self) -> Optional[SelectionBounds]:
        """Anchor and focus normalized into a min/max rectangle."""
        anchor, focus = self.state.anchor, self.state.focus
        if anchor is None or focus is None:
            return None
        return SelectionBounds(
            start_row=min(anchor[0], focus[0]),
            end_row=max(anchor[0], focus[0]),
            start_col=min(anchor[1], focus[1]),
            end_col=max(anchor[1], focus[1]),
        )

    def is_cell_in_selection(self, row: int, col: int) -> bool:
        bounds = self.selection_bounds()
        return bounds is not None and bounds.contains(row, col)

    def serialize(
        self,
        grid: Union[SheetRecord, Sequence[Sequence[CellRecord]]],
        formatter: Optional[CellFormatter] = None,
    ) -> str:
        """Selected rectangle as clipboard text: tab between columns, newline between rows.

        Positions outside the grid serialize as empty strings.
        """
        bounds = self.selection_bounds()
        if bounds is None:
            return ""

        rows = grid.data if isinstance(grid, SheetRecord) else grid
        render = formatter or default_cell_formatter

        lines = []
        for r in range(bounds.start_row, bounds.end_row + 1):
            row = rows[r] if 0 <= r < len(rows) else ()
            values = []
            for c in range(bounds.start_col, bounds.end_col + 1):
                values.append(render(row[c]) if 0 <= c < len(row) else "")
            lines.append("\t".join(values))
        return "\n".join(lines)

    def clear_selection(self) -> None:
        self.state = SelectionState()
