"""Health-check event system."""

from __future__ import annotations

from healthdeck.events.emitter import (
    EVENT_TYPES,
    EventEmitter,
    EventListener,
    HealthEvent,
    create_cli_emitter,
)
from healthdeck.events.log import EventLog
from healthdeck.events.webhook import WebhookListener

__all__ = [
    "EVENT_TYPES",
    "EventEmitter",
    "EventListener",
    "EventLog",
    "HealthEvent",
    "WebhookListener",
    "create_cli_emitter",
]
