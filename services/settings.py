"""Centralized viewer configuration.

Single source of truth for upload limits, viewport geometry and logging.
Reads from environment variables with sensible defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class ViewerSettings:
    """Viewer settings loaded from environment.

    Usage:
        settings = get_viewer_settings()
        print(settings.max_upload_bytes)  # 52428800
    """
    # Uploads
    max_upload_mb: int = 50

    # Viewport geometry defaults (pixels)
    row_height: float = 24.0
    column_width: float = 100.0
    overscan: int = 5
    scroll_debounce_ms: float = 16.0

    # Logging
    log_level: str | None = None
    log_debug: bool = False
    log_file: str | None = None

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def scroll_debounce_seconds(self) -> float:
        return self.scroll_debounce_ms / 1000.0


def _load_settings_from_env() -> ViewerSettings:
    """Load viewer settings from environment variables."""
    settings = ViewerSettings()

    if os.getenv("MAX_UPLOAD_MB"):
        settings.max_upload_mb = int(os.getenv("MAX_UPLOAD_MB"))

    if os.getenv("VIEWPORT_ROW_HEIGHT"):
        settings.row_height = float(os.getenv("VIEWPORT_ROW_HEIGHT"))
    if os.getenv("VIEWPORT_COLUMN_WIDTH"):
        settings.column_width = float(os.getenv("VIEWPORT_COLUMN_WIDTH"))
    if os.getenv("VIEWPORT_OVERSCAN"):
        settings.overscan = int(os.getenv("VIEWPORT_OVERSCAN"))
    if os.getenv("SCROLL_DEBOUNCE_MS"):
        settings.scroll_debounce_ms = float(os.getenv("SCROLL_DEBOUNCE_MS"))

    settings.log_level = os.getenv("LOG_LEVEL") or None
    settings.log_debug = os.getenv("LOG_DEBUG", "").lower() in ("1", "true")
    settings.log_file = os.getenv("LOG_FILE") or None

    return settings


# Singleton instance
_settings: ViewerSettings | None = None


def get_viewer_settings() -> ViewerSettings:
    """Get the viewer settings singleton.

    Settings are loaded once from environment on first access.
    """
    global _settings
    if _settings is None:
        _settings = _load_settings_from_env()
    return _settings


def reload_viewer_settings() -> ViewerSettings:
    """Force reload settings from environment.

    Useful for testing or after env changes.
    """
    global _settings
    _settings = _load_settings_from_env()
    return _settings
