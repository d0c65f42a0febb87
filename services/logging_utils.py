from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler


def configure_logging(*, debug: bool = False, level: str | None = None, log_path: str | None = None) -> None:
    """Configure app-wide logging.

    - Always logs to the console
    - Optionally also logs to a rotating file when ``log_path`` is given
    - ``level`` (e.g. "WARNING") wins over ``debug`` when both are set
    """

    if level:
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO
    else:
        resolved = logging.DEBUG if debug else logging.INFO

    root = logging.getLogger()
    root.setLevel(resolved)

    # Avoid duplicating handlers if the app is created more than once.
    if getattr(root, "_grid_viewer_configured", False):
        return

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setLevel(resolved)
    console.setFormatter(fmt)
    root.addHandler(console)

    if log_path:
        file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        file_handler.setLevel(resolved)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    setattr(root, "_grid_viewer_configured", True)
