"""Format handlers and the registry that dispatches to them."""

from .base import FormatHandler, ParserRegistry, run_parse_pipeline
from .csv_parser import CSV_HANDLER, decode_csv
from .xlsx_parser import XLSX_HANDLER, decode_xlsx

from ..events import EventBus


def default_registry(events: EventBus) -> ParserRegistry:
    """Registry with the container handler first, then CSV."""
    registry = ParserRegistry(events)
    registry.register(XLSX_HANDLER)
    registry.register(CSV_HANDLER)
    return registry


__all__ = [
    "FormatHandler",
    "ParserRegistry",
    "run_parse_pipeline",
    "default_registry",
    "decode_csv",
    "decode_xlsx",
    "CSV_HANDLER",
    "XLSX_HANDLER",
]
