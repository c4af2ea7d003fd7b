"""Module: events.

In-process domain event bus.

Events are published after the owning transaction has committed. Delivery is
fire-and-forget: a listener that raises is logged and skipped, and never
affects the publisher or the remaining listeners.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEPLOYMENT_CREATED = "deployment.created"
DEPLOYMENT_STATUS_CHANGED = "deployment.statusChanged"
APPROVAL_COMPLETED = "approval.completed"

Listener = Callable[[str, dict[str, Any]], None]


class EventBus:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: Listener) -> None:
        if listener not in self._listeners[event_name]:
            self._listeners[event_name].append(listener)

    def unsubscribe(self, event_name: str, listener: Listener) -> None:
        try:
            self._listeners[event_name].remove(listener)
        except ValueError:
            pass

    def listeners(self, event_name: str) -> list[Listener]:
        return list(self._listeners.get(event_name, ()))

    def publish(self, event_name: str, payload: dict[str, Any]) -> int:
        """Deliver *payload* to every listener; returns how many succeeded."""
        delivered = 0
        for listener in self.listeners(event_name):
            try:
                listener(event_name, payload)
                delivered += 1
            except Exception:
                logger.exception(
                    "Event listener %r failed for %s",
                    getattr(listener, "__name__", listener),
                    event_name,
                )
        if not delivered:
            logger.debug("Event %s had no successful listeners", event_name)
        return delivered


# Process-wide bus used by the API layer; tests build their own.
event_bus = EventBus()
