"""
stickytree — Sticky Event Bus

In-memory publication of sticky lifecycle events. Emission happens from
inside lifecycle hooks, which the engine calls synchronously, so delivery is
synchronous too. A failing listener is logged and skipped; it never breaks
the transition that emitted the event.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Callable
from typing import Any

import structlog

from stickytree.systems.sticky.types import StickyEvent, StickyEventType

logger = structlog.get_logger("stickytree.systems.sticky.events")

# Callback signature: def handler(event: StickyEvent) -> None
EventCallback = Callable[[StickyEvent], None]

_RECENT_BUFFER_SIZE: int = 100


class StickyEventBus:
    """Per-type and catch-all subscribers plus a recent-event ring buffer."""

    def __init__(self, buffer_size: int = _RECENT_BUFFER_SIZE) -> None:
        self._logger = logger.bind(system="sticky", component="event_bus")
        self._subscribers: dict[StickyEventType, list[EventCallback]] = defaultdict(list)
        self._global_subscribers: list[EventCallback] = []
        self._recent: dict[StickyEventType, deque[StickyEvent]] = defaultdict(
            lambda: deque(maxlen=buffer_size)
        )

        self._total_emitted: int = 0
        self._total_callback_errors: int = 0

    # ─── Subscription ────────────────────────────────────────────────

    def subscribe(self, event_type: StickyEventType, callback: EventCallback) -> None:
        """Register a callback for a specific event type."""
        self._subscribers[event_type].append(callback)

    def subscribe_all(self, callback: EventCallback) -> None:
        self._global_subscribers.append(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        for callbacks in self._subscribers.values():
            while callback in callbacks:
                callbacks.remove(callback)
        while callback in self._global_subscribers:
            self._global_subscribers.remove(callback)

    # ─── Emission ────────────────────────────────────────────────────

    def emit(self, event: StickyEvent) -> None:
        self._total_emitted += 1
        self._recent[event.event_type].append(event)

        callbacks = list(self._subscribers.get(event.event_type, []))
        callbacks.extend(self._global_subscribers)
        for callback in callbacks:
            try:
                callback(event)
            except Exception as exc:
                self._total_callback_errors += 1
                self._logger.error(
                    "event_callback_error",
                    event_type=event.event_type.value,
                    callback=getattr(callback, "__name__", str(callback)),
                    error=str(exc),
                )

    def publish(
        self,
        event_type: StickyEventType,
        state_name: str | None = None,
        transition_id: str | None = None,
        **data: Any,
    ) -> StickyEvent:
        """Build and emit an event in one call."""
        event = StickyEvent(
            event_type=event_type,
            state_name=state_name,
            transition_id=transition_id,
            data=data,
        )
        self.emit(event)
        return event

    # ─── Query ───────────────────────────────────────────────────────

    def recent(self, event_type: StickyEventType, limit: int = 10) -> list[StickyEvent]:
        """Return recent events of a given type (most recent first)."""
        buf = self._recent.get(event_type)
        if not buf:
            return []
        items = list(buf)
        items.reverse()
        return items[:limit]

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "total_emitted": self._total_emitted,
            "callback_errors": self._total_callback_errors,
            "subscriber_count": sum(
                len(v) for v in self._subscribers.values()
            ) + len(self._global_subscribers),
            "recent_buffer_sizes": {
                et.value: len(buf) for et, buf in self._recent.items()
            },
        }
