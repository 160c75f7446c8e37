"""Event emitter, listener protocol, and the health-check event dataclass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from healthdeck.config.models import HealthdeckConfig

logger = logging.getLogger(__name__)

EVENT_TYPES = frozenset({
    "check.started",
    "service.testing",
    "service.checked",
    "check.completed",
    "check.cancelled",
})


@dataclass
class HealthEvent:
    """A typed event emitted while a health-check run progresses."""

    event_type: str  # "check.started", "service.checked", etc.
    timestamp: datetime
    run_id: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "run_id": self.run_id,
            "data": self.data,
        }


class EventListener(Protocol):
    """Protocol for consuming health-check events."""

    async def on_event(self, event: HealthEvent) -> None: ...


class EventEmitter:
    """Dispatches run events to listeners; a failing listener never stops the run."""

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    async def emit(self, event: HealthEvent) -> None:
        for listener in self._listeners:
            try:
                await listener.on_event(event)
            except Exception:
                logger.exception("Listener failed on %s", event.event_type)

    async def drain(self) -> None:
        """Let listeners with background work (webhooks) finish it."""
        for listener in self._listeners:
            drain = getattr(listener, "drain", None)
            if drain is not None:
                await drain()


def create_cli_emitter(config: HealthdeckConfig) -> EventEmitter | None:
    """Emitter for one-shot CLI runs: webhooks only, no in-memory log."""
    if not config.webhooks:
        return None
    from healthdeck.events.webhook import WebhookListener

    emitter = EventEmitter()
    emitter.add_listener(WebhookListener(config.webhooks))
    return emitter
