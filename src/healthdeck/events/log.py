"""Bounded in-memory log of recent health-check events."""

from __future__ import annotations

import asyncio
from collections import deque

from healthdeck.events.emitter import HealthEvent


class EventLog:
    """Ring buffer of the last *max_size* events. Implements EventListener."""

    def __init__(self, max_size: int = 100) -> None:
        self._events: deque[HealthEvent] = deque(maxlen=max_size)
        self._lock = asyncio.Lock()

    async def on_event(self, event: HealthEvent) -> None:
        async with self._lock:
            self._events.append(event)

    async def get_recent(
        self,
        limit: int = 20,
        event_type: str | None = None,
        run_id: str | None = None,
    ) -> list[HealthEvent]:
        """Newest first, optionally narrowed to one event type and/or run."""
        async with self._lock:
            matching = [
                e
                for e in reversed(self._events)
                if (event_type is None or e.event_type == event_type)
                and (run_id is None or e.run_id == run_id)
            ]
        return matching[:limit]
