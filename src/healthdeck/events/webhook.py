"""Fire-and-forget webhook delivery of health-check events."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from typing import TYPE_CHECKING

import httpx

from healthdeck.events.emitter import HealthEvent

if TYPE_CHECKING:
    from healthdeck.config.models import WebhookConfig

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Healthdeck-Signature"


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class WebhookListener:
    """Posts matching events to configured URLs. Implements EventListener."""

    def __init__(self, webhooks: list[WebhookConfig], timeout: float = 10.0) -> None:
        self._webhooks = webhooks
        self._timeout = timeout
        self._pending: set[asyncio.Task[None]] = set()

    def _wants(self, wh: WebhookConfig, event: HealthEvent) -> bool:
        return "*" in wh.events or event.event_type in wh.events

    async def on_event(self, event: HealthEvent) -> None:
        for wh in self._webhooks:
            if not self._wants(wh, event):
                continue
            task = asyncio.create_task(self._deliver(wh, event), name=f"webhook-{wh.url}")
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for deliveries still in flight (used before a CLI process exits)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _deliver(self, wh: WebhookConfig, event: HealthEvent) -> None:
        # The signature covers the exact bytes put on the wire.
        body = json.dumps(event.to_dict()).encode()
        headers = {"Content-Type": "application/json"}
        if wh.secret:
            headers[SIGNATURE_HEADER] = sign(wh.secret, body)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                await client.post(wh.url, content=body, headers=headers)
        except Exception:
            logger.exception("Webhook delivery to %s failed (%s)", wh.url, event.event_type)
