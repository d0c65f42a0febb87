"""Parse pipeline and format-handler registry.

Every decode runs through the same fixed sequence:
1. emit ``parse:start``
2. reject empty input
3. run the format-specific decoder
4. run the optional post-process hook
5. compute metadata and emit ``parse:complete``

Any failure emits ``parse:error`` once and propagates; a partial workbook is
never returned.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..events import EventBus, Events
from ..exceptions import GridEngineError, NoStrategyError, ParseError, ValidationError
from ..schemas import ParseMetadata, ParseResult, WorkbookRecord

logger = logging.getLogger(__name__)

Decoder = Callable[[bytes], WorkbookRecord]
PostProcess = Callable[[WorkbookRecord], WorkbookRecord]


def identity(workbook: WorkbookRecord) -> WorkbookRecord:
    return workbook


@dataclass(frozen=True)
class FormatHandler:
    """A decoder bound to the file extensions it accepts."""
    name: str
    extensions: Tuple[str, ...]
    decode: Decoder
    post_process: Optional[PostProcess] = None

    def can_parse(self, file_name: str) -> bool:
        lower_name = file_name.lower()
        return any(lower_name.endswith(ext) for ext in self.extensions)


async def run_parse_pipeline(
    data: bytes,
    file_name: str,
    decode: Decoder,
    *,
    events: EventBus,
    post_process: Optional[PostProcess] = None,
) -> ParseResult:
    """Decode ``data`` into a ParseResult, reporting lifecycle events on ``events``."""
    start = time.perf_counter()
    hook = post_process or identity

    def _decode_and_post_process() -> WorkbookRecord:
        return hook(decode(bytes(data)))

    try:
        events.emit(Events.PARSE_START, {"file_name": file_name})

        if not data:
            raise ValidationError("Empty file", ValidationError.EMPTY_FILE)

        try:
            # Decoders are pure, so running one off the event loop is safe.
            workbook = await asyncio.to_thread(_decode_and_post_process)
        except GridEngineError:
            raise
        except Exception as e:
            raise ParseError(f"Failed to parse {file_name}: {e}", file_name) from e

        parse_time = (time.perf_counter() - start) * 1000
        result = ParseResult(
            workbook=workbook,
            metadata=ParseMetadata(
                file_name=file_name,
                file_size=len(data),
                sheet_count=len(workbook.sheets),
                parse_time=parse_time,
            ),
        )
    except GridEngineError as e:
        logger.warning("Parse failed for %s: %s", file_name, e)
        events.emit(Events.PARSE_ERROR, {"message": str(e)})
        raise

    logger.info(
        "Parsed %s: %d sheet(s) in %.1f ms",
        file_name,
        result.metadata.sheet_count,
        result.metadata.parse_time,
    )
    events.emit(Events.PARSE_COMPLETE, result)
    return result


class ParserRegistry:
    """Selects a format handler by file extension; first registered match wins."""

    def __init__(self, events: EventBus):
        self._events = events
        self._handlers: List[FormatHandler] = []

    @property
    def handlers(self) -> Tuple[FormatHandler, ...]:
        return tuple(self._handlers)

    def register(self, handler: FormatHandler) -> None:
        logger.debug("Registered %s handler for %s", handler.name, ", ".join(handler.extensions))
        self._handlers.append(handler)

    def get_handler(self, file_name: str) -> Optional[FormatHandler]:
        for handler in self._handlers:
            if handler.can_parse(file_name):
                return handler
        return None

    async def parse(self, data: bytes, file_name: str) -> ParseResult:
        handler = self.get_handler(file_name)
        if handler is None:
            error = NoStrategyError(file_name)
            logger.warning(error.message)
            self._events.emit(Events.PARSE_ERROR, {"message": error.message})
            raise error

        return await run_parse_pipeline(
            data,
            file_name,
            handler.decode,
            events=self._events,
            post_process=handler.post_process,
        )
