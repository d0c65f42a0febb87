"""Typed failures raised by the grid engine.

Acquisition-time validation and parse-time failures share one discipline:
both are raised as exceptions, and both are also reported on the event bus.
"""

from __future__ import annotations

from typing import Optional


class GridEngineError(Exception):
    """Base class for every error the grid engine raises."""


class ValidationError(GridEngineError):
    """Input rejected before decoding (empty, unsupported or oversized)."""

    EMPTY_FILE = "empty_file"
    UNSUPPORTED_EXTENSION = "unsupported_extension"
    FILE_TOO_LARGE = "file_too_large"

    def __init__(self, message: str, code: str = EMPTY_FILE):
        super().__init__(message)
        self.message = message
        self.code = code


class ParseError(GridEngineError):
    """The decoder could not turn the bytes into a workbook."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.file_name = file_name


class NoStrategyError(GridEngineError):
    """No registered format handler accepts the file name."""

    def __init__(self, file_name: str):
        message = f"No parser found for file: {file_name}"
        super().__init__(message)
        self.message = message
        self.file_name = file_name
