"""FastAPI application factory for healthdeck."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from healthdeck.api.routes import checks, events, services
from healthdeck.config.loader import load_config_or_default
from healthdeck.config.models import HealthdeckConfig
from healthdeck.events.emitter import EventEmitter
from healthdeck.events.log import EventLog
from healthdeck.events.webhook import WebhookListener
from healthdeck.registry.orchestrator import HealthCheckOrchestrator


def create_app(config: HealthdeckConfig | None = None) -> FastAPI:
    if config is None:
        config = load_config_or_default()

    logging.getLogger("healthdeck").setLevel(config.log_level.upper())

    app = FastAPI(
        title=config.healthdeck.name,
        version=config.healthdeck.version,
        description="Service registry admin and health checks",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    event_log = EventLog(config.event_log_size)
    emitter = EventEmitter()
    emitter.add_listener(event_log)
    if config.webhooks:
        emitter.add_listener(WebhookListener(config.webhooks))

    app.state.config = config
    app.state.event_log = event_log
    app.state.emitter = emitter
    # One orchestrator per process: a new run supersedes the previous one.
    app.state.orchestrator = HealthCheckOrchestrator(config.probe, emitter=emitter)

    @app.get("/health", tags=["meta"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(services.router, prefix="/api")
    app.include_router(checks.router, prefix="/api")
    app.include_router(events.router, prefix="/api")
    return app


app = create_app()
