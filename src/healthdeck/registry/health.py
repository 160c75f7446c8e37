"""Async probe that classifies the health of a single service."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from healthdeck.registry.models import ProbeOutcome, Service, ServiceState

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 15000
PROBE_HEADERS = {"Accept": "application/json"}
HEALTHY_BODY_STATUSES = ("healthy", "ok")

TIMEOUT_MESSAGE = "Request timeout"
NETWORK_MESSAGE = "Network error (CORS or unreachable)"


def is_healthy_status(status_code: int) -> bool:
    return 200 <= status_code < 400


def has_healthy_body(resp: httpx.Response) -> bool:
    """True iff the body is a JSON object whose ``status`` is "healthy" or "ok"."""
    try:
        body: Any = resp.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("status") in HEALTHY_BODY_STATUSES


def classify_response(resp: httpx.Response, elapsed_ms: int) -> ProbeOutcome:
    # Either signal alone counts as healthy.
    if is_healthy_status(resp.status_code) or has_healthy_body(resp):
        return ProbeOutcome(ServiceState.UP, elapsed_ms, status_code=resp.status_code)
    return ProbeOutcome(
        ServiceState.DOWN,
        elapsed_ms,
        error_message=f"HTTP {resp.status_code}",
        status_code=resp.status_code,
    )


def describe_transport_error(exc: Exception) -> str:
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return TIMEOUT_MESSAGE
    if isinstance(exc, httpx.NetworkError):
        return NETWORK_MESSAGE
    return str(exc) or type(exc).__name__


def _elapsed_ms(start: float) -> int:
    return int(round((time.monotonic() - start) * 1000))


async def _get(client: httpx.AsyncClient, url: str, timeout_ms: int) -> httpx.Response:
    # httpx timeouts are per phase; wait_for caps the whole exchange.
    return await asyncio.wait_for(
        client.get(url, headers=PROBE_HEADERS),
        timeout=timeout_ms / 1000,
    )


async def probe(
    service: Service,
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    client: Optional[httpx.AsyncClient] = None,
) -> ProbeOutcome:
    """GET ``service.url`` once and classify the answer.

    Every status code is accepted as a response; the classification is done
    here rather than by the transport. Any failure to obtain a response maps
    to :attr:`ServiceState.ERROR`. Cancellation is not swallowed.
    """
    start = time.monotonic()
    try:
        if client is not None:
            resp = await _get(client, service.url, timeout_ms)
        else:
            async with httpx.AsyncClient(
                timeout=timeout_ms / 1000, follow_redirects=True
            ) as own_client:
                resp = await _get(own_client, service.url, timeout_ms)
    except Exception as exc:
        elapsed = _elapsed_ms(start)
        message = describe_transport_error(exc)
        logger.info("Probe %s (%s) failed after %dms: %s", service.name, service.url, elapsed, message)
        return ProbeOutcome(ServiceState.ERROR, elapsed, error_message=message)

    outcome = classify_response(resp, _elapsed_ms(start))
    logger.debug(
        "Probe %s -> %s (HTTP %d, %dms)",
        service.name,
        outcome.state.value,
        resp.status_code,
        outcome.response_time_ms,
    )
    return outcome
