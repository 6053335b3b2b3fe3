"""
Session event kinds and observer registry.

Observers subscribe per event kind; any number of observers may listen to the
same kind and each receives every emission in subscription order.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

__all__ = ["EventRegistry", "SessionEvent"]


class SessionEvent(Enum):
    """Observable session events and their callback arguments"""

    CONNECTED = "connected"                # ()
    DISCONNECTED = "disconnected"          # (reason: str)
    ERROR = "error"                        # (message: str)
    CONTROL_GRANTED = "control_granted"    # ()
    CONTROL_RELEASED = "control_released"  # ()
    RESIZE = "resize"                      # (width: int, height: int)
    MEMBER_LIST = "member_list"            # (members: list[dict])
    TRACK = "track"                        # (track)
    PHASE_CHANGED = "phase_changed"        # (phase: SessionPhase)
    MESSAGE = "message"                    # (message: Message)


class EventRegistry:
    """Multi-observer callback registry keyed by SessionEvent."""

    def __init__(self) -> None:
        self._observers: dict[SessionEvent, list[Callable[..., Any]]] = {
            event: [] for event in SessionEvent
        }

    def subscribe(self, event: SessionEvent, callback: Callable[..., Any]) -> Callable[[], None]:
        """
        Register an observer.

        Args:
            event:
                Event kind.
            callback:
                Called with the event's arguments on every emission.

        Returns:
            Function that removes this subscription.
        """
        self._observers[event].append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(event, callback)

        return unsubscribe

    def unsubscribe(self, event: SessionEvent, callback: Callable[..., Any]) -> None:
        """
        Remove an observer; unknown callbacks are ignored.

        Args:
            event:
                Event kind.
            callback:
                Previously subscribed callback.
        """
        try:
            self._observers[event].remove(callback)
        except ValueError:
            pass

    def observerCount_get(self, event: SessionEvent) -> int:
        """Number of observers registered for an event kind."""
        return len(self._observers[event])

    def emit(self, event: SessionEvent, *args: Any) -> None:
        """
        Deliver an event to every observer.

        An observer that raises is logged and skipped; delivery continues.

        Args:
            event:
                Event kind.
            *args:
                Event arguments.
        """
        logger.debug("Event %s%s", event.value, args if args else "")
        for callback in list(self._observers[event]):
            try:
                callback(*args)
            except Exception:
                logger.error("Observer for %s failed", event.value, exc_info=True)
