"""File acquisition checks run before any bytes reach a decoder."""

from __future__ import annotations

import logging
from typing import Optional, Set, Union

from .events import EventBus, Events
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".xlsx", ".xls", ".csv")
DEFAULT_MAX_SIZE = 50 * 1024 * 1024  # 50MB


class FileLoader:
    """Validates file name and size, then hands the bytes on.

    Every rejection raises ValidationError and is also reported as
    ``file:error`` on the event bus.
    """

    def __init__(self, events: EventBus, max_size: int = DEFAULT_MAX_SIZE):
        self._events = events
        self.max_size = max_size
        self._supported: Set[str] = set(DEFAULT_EXTENSIONS)

    @property
    def supported_extensions(self) -> Set[str]:
        return set(self._supported)

    def add_supported_extension(self, extension: str) -> None:
        extension = extension.lower()
        if not extension.startswith("."):
            extension = f".{extension}"
        self._supported.add(extension)

    @staticmethod
    def get_file_extension(file_name: str) -> str:
        parts = file_name.lower().rsplit(".", 1)
        return f".{parts[1]}" if len(parts) > 1 else ""

    def _reject(self, message: str, code: str) -> ValidationError:
        logger.warning("Rejected file: %s", message)
        self._events.emit(Events.FILE_ERROR, {"message": message, "code": code})
        return ValidationError(message, code)

    def validate_file(self, file_name: Optional[str], size: int) -> None:
        name = (file_name or "").lower()
        if not any(name.endswith(ext) for ext in self._supported):
            supported = ", ".join(sorted(self._supported))
            raise self._reject(
                f"Unsupported file format. Supported formats: {supported}",
                ValidationError.UNSUPPORTED_EXTENSION,
            )

        if size > self.max_size:
            raise self._reject(
                f"File exceeds the size limit (max {self.max_size // (1024 * 1024)}MB)",
                ValidationError.FILE_TOO_LARGE,
            )

    def load(self, file_name: str, data: Union[bytes, bytearray, memoryview]) -> bytes:
        """Validate and return the file contents as bytes."""
        payload = bytes(data)
        self.validate_file(file_name, len(payload))
        self._events.emit(Events.FILE_LOADED, {"file_name": file_name, "file_size": len(payload)})
        return payload
