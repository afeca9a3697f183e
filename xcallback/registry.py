"""
Action registry: action name -> handler.

Inbound requests are routed here by the dispatcher with an O(1) lookup.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from .errors import FailureInfo
from .query import Parameters

logger = logging.getLogger("xcallback.registry")

SuccessCallback = Callable[[Parameters | None], None]
FailureCallback = Callable[[FailureInfo], None]
CancelCallback = Callable[[], None]

# (parameters, on_success, on_failure, on_cancel) -> None
ActionHandler = Callable[[Parameters, SuccessCallback, FailureCallback, CancelCallback], None]


class ActionRegistry:
    """Thread-safe registry of local action handlers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[str, ActionHandler] = {}

    def register(self, action: str, handler: ActionHandler) -> None:
        """Register a handler; a later registration for the same action wins."""
        if not callable(handler):
            raise TypeError(f"handler for {action!r} is not callable")
        with self._lock:
            replaced = action in self._handlers
            self._handlers[action] = handler
        if replaced:
            logger.debug("action_replaced action=%s", action)

    def unregister(self, action: str) -> None:
        with self._lock:
            self._handlers.pop(action, None)

    def get(self, action: str) -> ActionHandler | None:
        with self._lock:
            return self._handlers.get(action)

    def has(self, action: str) -> bool:
        with self._lock:
            return action in self._handlers

    @property
    def actions(self) -> list[str]:
        with self._lock:
            return list(self._handlers.keys())

    def __contains__(self, action: object) -> bool:
        return isinstance(action, str) and self.has(action)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)


__all__ = [
    "ActionHandler",
    "ActionRegistry",
    "CancelCallback",
    "FailureCallback",
    "SuccessCallback",
]
