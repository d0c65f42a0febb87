"""Virtual scrolling: maps scroll position and geometry to the visible row window.

Scroll input updates the raw position at once; the visible range is
recomputed after a short debounce so that a burst of scroll events yields
exactly one recomputation. Columns are not virtualized.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Optional

from .events import EventBus, Events

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.016  # about one animation frame


@dataclass
class ScrollState:
    scroll_top: float = 0.0
    scroll_left: float = 0.0
    container_height: float = 0.0
    container_width: float = 0.0
    row_height: float = 24.0
    column_width: float = 100.0
    overscan: int = 5

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.row_height <= 0:
            raise ValueError(f"row_height must be positive, got {self.row_height}")
        if self.overscan < 0:
            raise ValueError(f"overscan must not be negative, got {self.overscan}")


@dataclass(frozen=True)
class VisibleRange:
    """0-based inclusive grid window. An empty grid has ``end_row == -1``."""
    start_row: int
    end_row: int
    start_col: int
    end_col: int

    @property
    def is_empty(self) -> bool:
        return self.end_row < self.start_row or self.end_col < self.start_col

    def to_dict(self) -> dict:
        return {
            "start_row": self.start_row,
            "end_row": self.end_row,
            "start_col": self.start_col,
            "end_col": self.end_col,
        }


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


class ViewportController:
    """Owns a ScrollState and publishes the visible range on ``scroll``.

    Scroll handling must happen while an asyncio event loop is running; the
    debounce is a ``loop.call_later`` timer that each new scroll cancels.
    """

    def __init__(
        self,
        events: EventBus,
        state: Optional[ScrollState] = None,
        total_rows: int = 0,
        total_cols: int = 0,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self._events = events
        self.state = state or ScrollState()
        self.total_rows = total_rows
        self.total_cols = total_cols
        self.debounce_seconds = debounce_seconds
        self.visible_range: VisibleRange = self.calculate_visible_range()
        self._pending: Optional[asyncio.TimerHandle] = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def calculate_visible_range(self) -> VisibleRange:
        if self.total_rows <= 0:
            return VisibleRange(0, -1, 0, self.total_cols - 1 if self.total_cols > 0 else -1)

        state = self.state
        last_row = self.total_rows - 1
        start_row = _clamp(math.floor(state.scroll_top / state.row_height) - state.overscan, 0, last_row)
        visible_count = math.ceil(state.container_height / state.row_height)
        end_row = _clamp(start_row + visible_count + 2 * state.overscan, 0, last_row)

        return VisibleRange(
            start_row=start_row,
            end_row=end_row,
            start_col=0,
            end_col=self.total_cols - 1 if self.total_cols > 0 else -1,
        )

    def handle_scroll(
        self,
        scroll_top: float,
        scroll_left: float = 0.0,
        container_height: Optional[float] = None,
        container_width: Optional[float] = None,
    ) -> None:
        """Record the new scroll position and (re)arm the debounced recomputation."""
        self.state.scroll_top = scroll_top
        self.state.scroll_left = scroll_left
        if container_height is not None:
            self.state.container_height = container_height
        if container_width is not None:
            self.state.container_width = container_width
        self.state.validate()

        if self._pending is not None:
            self._pending.cancel()
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self.debounce_seconds, self._recompute)

    def _recompute(self) -> None:
        self._pending = None
        self.visible_range = self.calculate_visible_range()
        logger.debug("Visible range %s", self.visible_range)
        self._events.emit(Events.SCROLL, {"visible_range": self.visible_range})

    def flush(self) -> VisibleRange:
        """Run a pending recomputation now instead of waiting for the timer."""
        if self._pending is not None:
            self._pending.cancel()
            self._recompute()
        return self.visible_range

    def handle_zoom(self, delta: float) -> None:
        self._events.emit(Events.ZOOM, {"delta": delta})

    def update_dimensions(self, total_rows: int, total_cols: int) -> None:
        self.total_rows = total_rows
        self.total_cols = total_cols

    def destroy(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
