"""YAML config loader with environment variable interpolation."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from healthdeck.config.models import HealthdeckConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".healthdeck.yaml"
CONFIG_PATH_ENV = "HEALTHDECK_CONFIG"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _interpolate_env(value: str) -> str:
    """Replace ${VAR} and ${VAR:-default} with values from the environment.

    Unset variables without a default are left untouched so that a missing
    secret shows up verbatim in ``config show`` instead of silently vanishing.
    """

    def _replace(match: re.Match[str]) -> str:
        name, sep, default = match.group(1).partition(":-")
        name = name.strip()
        if sep:
            return os.environ.get(name, default)
        return os.environ.get(name, match.group(0))

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return _interpolate_env(data)
    if isinstance(data, dict):
        return {key: _interpolate_recursive(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_interpolate_recursive(item) for item in data]
    return data


def find_config_file(start: Path | None = None) -> Path | None:
    """Locate the config file.

    ``$HEALTHDECK_CONFIG`` wins when set; otherwise walk up from *start*
    (default cwd) looking for .healthdeck.yaml.
    """
    override = os.environ.get(CONFIG_PATH_ENV)
    if override:
        return Path(override)
    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None) -> HealthdeckConfig:
    """Load and validate .healthdeck.yaml, applying env-var interpolation."""
    config_path = path or find_config_file()
    if config_path is None or not config_path.exists():
        raise FileNotFoundError(
            f"Could not find {CONFIG_FILENAME}. Copy .healthdeck.yaml.example or pass --path."
        )
    with config_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    try:
        return HealthdeckConfig(**_interpolate_recursive(raw))
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration in {config_path}: {exc}") from exc


def load_config_or_default(path: Path | None = None) -> HealthdeckConfig:
    """Like :func:`load_config`, but fall back to built-in defaults."""
    try:
        return load_config(path)
    except (FileNotFoundError, ValueError) as exc:
        logger.warning("Using default configuration: %s", exc)
        return HealthdeckConfig()
