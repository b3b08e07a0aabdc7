"""
Event fan-out owned by the application layer.

Listeners are plain callables registered per event name. Delivery is
fire-and-forget: a failing listener is logged and the remaining listeners
still run.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

SESSION_COMPLETED = "session_completed"
TASK_SESSION_COMPLETED = "task_session_completed"
SETTINGS_CHANGED = "settings_changed"
DAILY_GOAL_REACHED = "daily_goal_reached"
TASK_AUTO_COMPLETED = "task_auto_completed"

EVENTS = (
    SESSION_COMPLETED,
    TASK_SESSION_COMPLETED,
    SETTINGS_CHANGED,
    DAILY_GOAL_REACHED,
    TASK_AUTO_COMPLETED,
)


class EventBus:

    def __init__(self):
        self._listeners: Dict[str, List[Callable[[Any], None]]] = defaultdict(list)

    def register_listener(self, event: str, fn: Callable[[Any], None]) -> None:
        """Register a callback(payload) for *event*."""
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event!r}")
        self._listeners[event].append(fn)

    def emit(self, event: str, payload: Any = None) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(payload)
            except Exception:
                logger.exception("%s listener failed", event)
