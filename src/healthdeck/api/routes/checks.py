"""Health-check run endpoints: start, observe, and stream runs."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import StreamingResponse

from healthdeck.api.auth import require_api_key
from healthdeck.api.routes.services import fetch_services
from healthdeck.registry.models import Service
from healthdeck.registry.orchestrator import HealthCheckOrchestrator

router = APIRouter(tags=["health-checks"])

NOTHING_TO_TEST = "No services to test"


def _orchestrator(request: Request) -> HealthCheckOrchestrator:
    return request.app.state.orchestrator


@router.post("/health-checks", dependencies=[Depends(require_api_key)])
async def start_health_check(request: Request, response: Response, wait: bool = False) -> dict[str, Any]:
    """Start a fresh run over every registered service.

    By default the run proceeds in the background (202) and can be followed
    through ``GET /api/health-checks/current``; ``?wait=true`` blocks until
    every service has been probed.
    """
    services = await fetch_services(request)
    orchestrator = _orchestrator(request)
    if not services:
        run = await orchestrator.run([])
        return {**run.to_dict(), "message": NOTHING_TO_TEST}
    if wait:
        run = await orchestrator.run(services)
        return run.to_dict()
    run = orchestrator.start(services)
    response.status_code = 202
    return run.to_dict()


@router.get("/health-checks/current")
async def current_health_check(request: Request) -> dict[str, Any]:
    run = _orchestrator(request).current_run
    if run is None:
        raise HTTPException(status_code=404, detail="No health check has been run yet")
    return run.to_dict()


@router.delete("/health-checks/current", dependencies=[Depends(require_api_key)])
async def cancel_health_check(request: Request) -> dict[str, bool]:
    return {"cancelled": _orchestrator(request).cancel()}


async def _ndjson(orchestrator: HealthCheckOrchestrator, services: list[Service]) -> AsyncIterator[bytes]:
    # Leaving the block early (client disconnect) cancels the run.
    async with orchestrator.stream(services) as updates:
        async for update in updates:
            line = {"type": "status", "index": update.index, **update.status.to_dict()}
            yield (json.dumps(line) + "\n").encode()
    run = updates.run
    summary = {"run_id": run.run_id, "cancelled": run.cancelled, **run.summary().to_dict()}
    yield (json.dumps({"type": "summary", **summary}) + "\n").encode()


@router.post("/health-checks/stream", dependencies=[Depends(require_api_key)])
async def stream_health_check(request: Request) -> StreamingResponse:
    """Run a check and stream one NDJSON line per transition, then the summary."""
    services = await fetch_services(request)
    return StreamingResponse(
        _ndjson(_orchestrator(request), services),
        media_type="application/x-ndjson",
    )
