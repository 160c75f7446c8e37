"""Pydantic models for healthdeck configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RegistryConfig(BaseModel):
    """Connection settings for the external service registry."""

    base_url: str = "http://localhost:4000"
    timeout: float = 10.0
    api_key_env: str = ""


class ProbeConfig(BaseModel):
    """Timing policy for a health-check run."""

    timeout_ms: int = Field(default=15000, gt=0)
    pacing_ms: int = Field(default=300, ge=0)


class HealthdeckIdentity(BaseModel):
    """Top-level identity metadata."""

    name: str = "healthdeck"
    version: str = "0.1.0"


class AuthConfig(BaseModel):
    """Authentication configuration."""

    api_key: str = ""  # empty = auth disabled


class WebhookConfig(BaseModel):
    """Configuration for a single webhook endpoint."""

    url: str
    events: list[str] = Field(default_factory=lambda: ["check.completed"])
    secret: str = ""  # HMAC signing key, supports ${ENV_VAR}


class HealthdeckConfig(BaseModel):
    """Root configuration model for .healthdeck.yaml."""

    healthdeck: HealthdeckIdentity = Field(default_factory=HealthdeckIdentity)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    webhooks: list[WebhookConfig] = Field(default_factory=list)
    event_log_size: int = Field(default=100, ge=1)
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level
