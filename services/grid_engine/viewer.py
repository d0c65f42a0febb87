"""SpreadsheetViewer - coordinates loading, parsing and the current workbook."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .events import EventBus, EventCallback, Events
from .loader import DEFAULT_MAX_SIZE, FileLoader
from .parsers import ParserRegistry, default_registry
from .schemas import ParseResult, SheetRecord, WorkbookRecord

logger = logging.getLogger(__name__)


class SpreadsheetViewer:
    """Facade owning one EventBus, FileLoader and ParserRegistry.

    A successful load replaces the current parse result wholesale; a failed
    load leaves the previous one in place.
    """

    def __init__(self, max_file_size: int = DEFAULT_MAX_SIZE, registry: Optional[ParserRegistry] = None):
        self.events = EventBus()
        self.loader = FileLoader(self.events, max_size=max_file_size)
        self.registry = registry or default_registry(self.events)
        self._result: Optional[ParseResult] = None
        self._active_index = 0

    @property
    def parse_result(self) -> Optional[ParseResult]:
        return self._result

    @property
    def workbook(self) -> Optional[WorkbookRecord]:
        return self._result.workbook if self._result is not None else None

    @property
    def active_sheet_index(self) -> int:
        return self._active_index

    @property
    def active_sheet(self) -> Optional[SheetRecord]:
        workbook = self.workbook
        return workbook.get_sheet_by_index(self._active_index) if workbook is not None else None

    async def load_file(self, file_name: str, data: Union[bytes, bytearray, memoryview]) -> ParseResult:
        payload = self.loader.load(file_name, data)
        result = await self.registry.parse(payload, file_name)
        self._result = result
        self._active_index = result.workbook.active_sheet_index
        return result

    def set_active_sheet(self, index: int) -> SheetRecord:
        workbook = self.workbook
        sheet = workbook.get_sheet_by_index(index) if workbook is not None else None
        if sheet is None:
            raise IndexError(f"No sheet at index {index}")
        self._active_index = index
        self.events.emit(Events.SHEET_CHANGE, {"index": index, "name": sheet.name})
        return sheet

    def on(self, event: Union[Events, str], callback: EventCallback) -> None:
        self.events.on(event, callback)

    def off(self, event: Union[Events, str], callback: EventCallback) -> None:
        self.events.off(event, callback)

    def destroy(self) -> None:
        self.events.clear()
        self._result = None
        self._active_index = 0
