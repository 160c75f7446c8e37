"""healthdeck configuration system."""

from healthdeck.config.loader import find_config_file, load_config, load_config_or_default
from healthdeck.config.models import (
    AuthConfig,
    HealthdeckConfig,
    ProbeConfig,
    RegistryConfig,
    WebhookConfig,
)

__all__ = [
    "AuthConfig",
    "HealthdeckConfig",
    "ProbeConfig",
    "RegistryConfig",
    "WebhookConfig",
    "load_config",
    "load_config_or_default",
    "find_config_file",
]
