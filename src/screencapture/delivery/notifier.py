"""
Capture Notifications
=====================

Distinguishable success / failure events for capture consumers.

Events:
    SAVED: Remote upload confirmed persistence
    ERROR: A capture or delivery step failed (no artifact delivered)

Handlers are plain callables taking the event and a payload dict. A
failing handler is logged and does not stop the remaining handlers.
"""

import logging
from collections import Counter
from enum import Enum
from typing import Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


class CaptureEvent(str, Enum):
    """Notification names."""

    SAVED = "screencapture-saved-db"
    ERROR = "screencapture-error-db"


EventHandler = Callable[[CaptureEvent, dict], None]


class Notifier:
    """
    Fan-out of capture events to subscribed handlers.

    Example:
        notifier = Notifier()
        notifier.subscribe(CaptureEvent.ERROR, lambda event, payload: print(payload))
        notifier.emit(CaptureEvent.ERROR, {"error": "upload failed"})
    """

    def __init__(self) -> None:
        self._handlers: Dict[CaptureEvent, List[EventHandler]] = {}
        self._counts: Counter = Counter()

    def subscribe(self, event: CaptureEvent, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def unsubscribe(self, event: CaptureEvent, handler: EventHandler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: CaptureEvent, payload: Optional[dict] = None) -> None:
        """Deliver an event to every handler subscribed to it."""
        payload = payload or {}
        self._counts[event] += 1
        logger.info(f"Event {event.value}: {payload}")

        for handler in list(self._handlers.get(event, [])):
            try:
                handler(event, payload)
            except Exception as e:
                logger.warning(f"Handler for {event.value} raised: {e}")

    def count(self, event: CaptureEvent) -> int:
        """Number of times an event was emitted."""
        return self._counts[event]

    def metrics(self) -> dict:
        return {event.value: self._counts[event] for event in CaptureEvent}
