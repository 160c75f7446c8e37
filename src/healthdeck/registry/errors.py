"""Exceptions raised by the registry client and the health-check orchestrator."""

from __future__ import annotations


class InvalidServiceError(ValueError):
    """A service record cannot be health-checked (wrong type, missing URL)."""


class InvalidTransitionError(RuntimeError):
    """A status entry was moved along an edge the state machine does not allow."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Illegal status transition: {current} -> {target}")


class MetadataValidationError(ValueError):
    """Metadata pairs were rejected before a registration request was built."""


class ServiceValidationError(ValueError):
    """Service name or URL was rejected before a registration request was sent."""


class RegistryUnavailableError(Exception):
    """Raised when the registry cannot be reached."""


class RegistryError(Exception):
    """Raised when the registry answers with a non-success status."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Registry error {status_code}: {detail}")
