"""Service registry access, probing, and the health-check orchestrator."""

from healthdeck.registry.client import RegistryClient, build_metadata
from healthdeck.registry.health import probe
from healthdeck.registry.models import (
    HealthCheckRun,
    HealthSummary,
    ProbeOutcome,
    Service,
    ServiceState,
    ServiceStatus,
    StatusUpdate,
)
from healthdeck.registry.orchestrator import HealthCheckOrchestrator

__all__ = [
    "HealthCheckOrchestrator",
    "HealthCheckRun",
    "HealthSummary",
    "ProbeOutcome",
    "RegistryClient",
    "Service",
    "ServiceState",
    "ServiceStatus",
    "StatusUpdate",
    "build_metadata",
    "probe",
]
