"""Data models for registered services and health-check runs."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from healthdeck.registry.errors import InvalidTransitionError


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Service(BaseModel):
    """A worker endpoint as returned by the registry."""

    id: str
    name: str = Field(min_length=1)
    url: str
    metadata: dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not is_valid_url(value):
            raise ValueError(f"not an absolute http(s) URL: {value!r}")
        return value

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, value: Any) -> Any:
        # The registry stores metadata as free-form JSON.
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): v if isinstance(v, str) else str(v) for k, v in value.items()}
        return value


class ServiceState(str, Enum):
    PENDING = "pending"
    TESTING = "testing"
    UP = "up"
    DOWN = "down"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({ServiceState.UP, ServiceState.DOWN, ServiceState.ERROR})

TRANSITIONS: dict[ServiceState, frozenset[ServiceState]] = {
    ServiceState.PENDING: frozenset({ServiceState.TESTING}),
    ServiceState.TESTING: TERMINAL_STATES,
    ServiceState.UP: frozenset(),
    ServiceState.DOWN: frozenset(),
    ServiceState.ERROR: frozenset(),
}


@dataclass(frozen=True)
class ProbeOutcome:
    """Classified result of a single probe."""

    state: ServiceState
    response_time_ms: int
    error_message: Optional[str] = None
    status_code: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.state.terminal:
            raise ValueError(f"probe outcome must be terminal, got {self.state.value}")


@dataclass(frozen=True)
class ServiceStatus:
    """Immutable snapshot of one entry of a run.

    A new snapshot is produced for every transition, so observers holding an
    older one never see it change underneath them.
    """

    service: Service
    state: ServiceState = ServiceState.PENDING
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None

    def _advance(self, target: ServiceState, **changes: Any) -> ServiceStatus:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state.value, target.value)
        return replace(self, state=target, **changes)

    def begin(self) -> ServiceStatus:
        return self._advance(ServiceState.TESTING)

    def finish(self, outcome: ProbeOutcome) -> ServiceStatus:
        message = outcome.error_message if outcome.state is not ServiceState.UP else None
        return self._advance(
            outcome.state,
            response_time_ms=outcome.response_time_ms,
            error_message=message,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_id": self.service.id,
            "name": self.service.name,
            "url": self.service.url,
            "state": self.state.value,
            "response_time_ms": self.response_time_ms,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class HealthSummary:
    total: int
    up: int
    down: int

    @property
    def nothing_to_test(self) -> bool:
        return self.total == 0

    @classmethod
    def from_statuses(cls, statuses: list[ServiceStatus]) -> HealthSummary:
        up = sum(1 for s in statuses if s.state is ServiceState.UP)
        down = sum(1 for s in statuses if s.state in (ServiceState.DOWN, ServiceState.ERROR))
        return cls(total=len(statuses), up=up, down=down)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "up": self.up,
            "down": self.down,
            "nothing_to_test": self.nothing_to_test,
        }


@dataclass(frozen=True)
class StatusUpdate:
    """One observable transition: entry *index* now looks like *status*."""

    index: int
    status: ServiceStatus


@dataclass
class HealthCheckRun:
    """Live status sequence for one sweep over the registered services.

    The orchestrator loop is the only writer. Readers should go through
    :meth:`snapshot`, which returns a copy of the per-index snapshots.
    """

    services: list[Service]
    statuses: list[ServiceStatus] = field(default_factory=list)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled: bool = False
    current_index: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.statuses:
            self.statuses = [ServiceStatus(service=s) for s in self.services]

    @property
    def finished(self) -> bool:
        return self.completed_at is not None

    def snapshot(self) -> list[ServiceStatus]:
        return list(self.statuses)

    def publish(self, index: int, status: ServiceStatus) -> StatusUpdate:
        """Replace entry *index*, enforcing the one-at-a-time ordering."""
        for earlier in self.statuses[:index]:
            if not earlier.state.terminal:
                raise InvalidTransitionError(earlier.state.value, status.state.value)
        self.statuses[index] = status
        self.current_index = None if status.state.terminal else index
        return StatusUpdate(index=index, status=status)

    def summary(self) -> HealthSummary:
        return HealthSummary.from_statuses(self.statuses)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "finished": self.finished,
            "cancelled": self.cancelled,
            "current_index": self.current_index,
            "statuses": [s.to_dict() for s in self.statuses],
            "summary": self.summary().to_dict(),
        }
