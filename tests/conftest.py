"""Shared fixtures for healthdeck tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict
from unittest.mock import AsyncMock, patch

import pytest
import yaml

from healthdeck.config.models import HealthdeckConfig
from healthdeck.registry.models import (
    HealthCheckRun,
    ProbeOutcome,
    Service,
)

SAMPLE_CONFIG: Dict[str, Any] = {
    "healthdeck": {"name": "healthdeck", "version": "0.1.0"},
    "registry": {
        "base_url": "http://registry.local:4000",
        "timeout": 5,
        "api_key_env": "",
    },
    "probe": {"timeout_ms": 15000, "pacing_ms": 0},
    "auth": {"api_key": ""},
    "webhooks": [],
    "event_log_size": 50,
}

SAMPLE_SERVICES: list[Dict[str, Any]] = [
    {
        "id": "svc-lyrics",
        "name": "Lyrics Worker",
        "url": "http://lyrics.local:8080/health",
        "metadata": {"team": "ingest"},
        "created_at": "2025-11-02T10:00:00Z",
        "updated_at": "2025-11-03T09:30:00Z",
    },
    {
        "id": "svc-covers",
        "name": "Cover Art Fetcher",
        "url": "http://covers.local:8081/",
        "metadata": {},
        "created_at": "2025-11-02T10:05:00Z",
        "updated_at": "2025-11-02T10:05:00Z",
    },
    {
        "id": "svc-catalog",
        "name": "Catalog Sync",
        "url": "https://catalog.local/status",
        "metadata": {"source": "spotify", "tier": "1"},
        "created_at": None,
        "updated_at": None,
    },
]


@pytest.fixture()
def sample_config() -> HealthdeckConfig:
    """Return a parsed HealthdeckConfig from sample data."""
    return HealthdeckConfig(**SAMPLE_CONFIG)


@pytest.fixture()
def sample_config_dict() -> Dict[str, Any]:
    return dict(SAMPLE_CONFIG)


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    """Write sample config to a temp .healthdeck.yaml and return the path."""
    path = tmp_path / ".healthdeck.yaml"
    with path.open("w") as fh:
        yaml.dump(SAMPLE_CONFIG, fh)
    return path


@pytest.fixture()
def service_records() -> list[Dict[str, Any]]:
    """Raw registry records as returned by ``GET /services``."""
    return [dict(raw) for raw in SAMPLE_SERVICES]


@pytest.fixture()
def services() -> list[Service]:
    return [Service.model_validate(raw) for raw in SAMPLE_SERVICES]


@pytest.fixture()
def finished_run() -> Callable[[list[Service], list[ProbeOutcome]], HealthCheckRun]:
    """Build a completed run with the given outcomes, without any probing."""

    def _build(services: list[Service], outcomes: list[ProbeOutcome]) -> HealthCheckRun:
        run = HealthCheckRun(services=list(services))
        for index, outcome in enumerate(outcomes):
            run.publish(index, run.statuses[index].begin().finish(outcome))
        run.started_at = run.completed_at = datetime.now(UTC)
        return run

    return _build


@pytest.fixture()
def mock_http() -> Iterator[Callable[[str], AsyncMock]]:
    """Patch ``httpx.AsyncClient`` as seen from *module*; returns the client mock."""
    patchers: list[Any] = []

    def _patch(module: str) -> AsyncMock:
        patcher = patch(f"{module}.httpx.AsyncClient")
        mock_cls = patcher.start()
        patchers.append(patcher)
        mock_client = AsyncMock()
        mock_cls.return_value.__aenter__ = AsyncMock(return_value=mock_client)
        mock_cls.return_value.__aexit__ = AsyncMock(return_value=False)
        mock_client.client_cls = mock_cls
        return mock_client

    yield _patch
    for patcher in reversed(patchers):
        patcher.stop()
