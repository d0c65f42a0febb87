"""Instance-owned publish/subscribe channel.

Each viewer owns one EventBus; nothing here is process-wide.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

EventCallback = Callable[..., None]


class Events(str, Enum):
    """Notification names produced and consumed by the engine."""
    FILE_LOADED = "file:loaded"
    FILE_ERROR = "file:error"
    PARSE_START = "parse:start"
    PARSE_COMPLETE = "parse:complete"
    PARSE_ERROR = "parse:error"
    SHEET_CHANGE = "sheet:change"
    CELL_SELECT = "cell:select"
    CELL_HOVER = "cell:hover"
    SCROLL = "scroll"
    ZOOM = "zoom"
    RENDER_START = "render:start"
    RENDER_COMPLETE = "render:complete"


def _key(event: Union[Events, str]) -> str:
    return event.value if isinstance(event, Events) else event


class EventBus:
    """Manages event subscriptions and notifications."""

    def __init__(self) -> None:
        self._events: Dict[str, List[EventCallback]] = {}

    def on(self, event: Union[Events, str], callback: EventCallback) -> None:
        """Subscribe to an event. Subscribing the same callback twice is a no-op."""
        callbacks = self._events.setdefault(_key(event), [])
        if callback not in callbacks:
            callbacks.append(callback)

    def off(self, event: Union[Events, str], callback: EventCallback) -> None:
        callbacks = self._events.get(_key(event))
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: Union[Events, str], *args: Any) -> None:
        """Deliver to every subscriber in subscription order.

        A failing handler is logged and does not stop delivery to the others.
        """
        name = _key(event)
        for callback in list(self._events.get(name, ())):
            try:
                callback(*args)
            except Exception:
                logger.exception("Error in event handler for %s", name)

    def clear(self) -> None:
        self._events.clear()

    def get_events(self) -> List[str]:
        return [name for name, callbacks in self._events.items() if callbacks]

    def get_subscriber_count(self, event: Union[Events, str]) -> int:
        return len(self._events.get(_key(event), ()))
