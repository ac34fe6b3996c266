"""
NotificationService -- in-process event fan-out.

Responsibility:
    Implements the kernel's ``EventSink``: listeners subscribe and are
    called synchronously with every workflow event.  Transports (socket
    push, polling endpoints, queues) subscribe here.

Failure modes:
    - A listener that raises is logged with ``event_listener_failed`` and
      skipped; remaining listeners still receive the event and the
      caller's operation is unaffected.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Mapping

from approval_kernel.domain.events import EventType
from approval_kernel.logging_config import get_logger

logger = get_logger("services.notifications")

Listener = Callable[[EventType, Mapping[str, Any]], None]


class NotificationService:
    """Subscribe/notify hub for approval workflow events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def notify(self, event_type: EventType, payload: Mapping[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners)

        logger.debug(
            "event_published",
            extra={"event_type": event_type.value, "listeners": len(listeners)},
        )
        for listener in listeners:
            try:
                listener(event_type, payload)
            except Exception:
                logger.error(
                    "event_listener_failed",
                    extra={"event_type": event_type.value},
                    exc_info=True,
                )
