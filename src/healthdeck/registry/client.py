"""httpx-based client for the external service registry.

All methods return typed results or raise RegistryUnavailableError /
RegistryError, or InvalidServiceError for a malformed listing. Registration input is validated locally first, so a rejected
request never reaches the network.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from healthdeck.config.models import RegistryConfig
from healthdeck.registry.errors import (
    InvalidServiceError,
    MetadataValidationError,
    RegistryError,
    RegistryUnavailableError,
    ServiceValidationError,
)
from healthdeck.registry.models import Service, is_valid_url

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


def build_metadata(pairs: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Turn ordered key/value pairs into a metadata mapping.

    Keys and values are trimmed. Any blank key or value, or a key that
    appears twice, rejects the whole set.
    """
    entries = [(key.strip(), value.strip()) for key, value in pairs]
    if any(not key or not value for key, value in entries):
        raise MetadataValidationError("All metadata fields must be filled")
    keys = [key for key, _ in entries]
    if len(set(keys)) != len(keys):
        raise MetadataValidationError("Duplicate keys are not allowed")
    return dict(entries)


def parse_metadata_options(options: Iterable[str]) -> list[tuple[str, str]]:
    """Split ``key=value`` strings from the command line into pairs."""
    pairs: list[tuple[str, str]] = []
    for option in options:
        key, sep, value = option.partition("=")
        if not sep:
            raise MetadataValidationError(f"Expected key=value, got {option!r}")
        pairs.append((key, value))
    return pairs


def validate_registration(name: str, url: str) -> tuple[str, str]:
    name = name.strip()
    url = url.strip()
    if not name:
        raise ServiceValidationError("Service name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ServiceValidationError(f"Name must be less than {MAX_NAME_LENGTH} characters")
    if not url:
        raise ServiceValidationError("Service URL is required")
    if not is_valid_url(url):
        raise ServiceValidationError("Please enter a valid URL")
    return name, url


def _error_detail(resp: httpx.Response) -> str:
    try:
        body: Any = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if body.get(key):
                return str(body[key])
    return resp.text


class RegistryClient:
    """Async client for ``{base_url}/services``."""

    def __init__(self, base_url: str, timeout: float = 10.0, api_key: str = "") -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._api_key = api_key

    @classmethod
    def from_config(cls, config: RegistryConfig) -> RegistryClient:
        api_key = os.environ.get(config.api_key_env, "") if config.api_key_env else ""
        return cls(config.base_url, timeout=config.timeout, api_key=api_key)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["X-API-Key"] = self._api_key
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise RegistryUnavailableError(f"Registry unreachable at {self._base_url}: {exc}") from exc
        if resp.status_code >= 400:
            raise RegistryError(resp.status_code, _error_detail(resp))
        return resp

    async def list_services(self, skip_invalid: bool = False) -> list[Service]:
        """Fetch every registered service, in registry order.

        A record that does not validate as a :class:`Service` raises
        :class:`InvalidServiceError` naming its position and id. With
        ``skip_invalid`` such records are logged and left out instead, which
        suits listing but not health checks.
        """
        resp = await self._request("GET", "/services")
        try:
            payload: Any = resp.json()
        except ValueError as exc:
            raise RegistryError(resp.status_code, "Registry returned a non-JSON body") from exc
        if not isinstance(payload, list):
            raise RegistryError(resp.status_code, "Expected a JSON array of services")
        services: list[Service] = []
        for index, item in enumerate(payload):
            try:
                services.append(Service.model_validate(item))
            except ValidationError as exc:
                record_id = item.get("id") if isinstance(item, dict) else None
                if not skip_invalid:
                    raise InvalidServiceError(
                        f"Malformed service record {index} (id={record_id!r}): "
                        f"{exc.error_count()} validation error(s)"
                    ) from exc
                logger.warning("Skipping malformed service record %d (id=%r): %s", index, record_id, exc)
        return services

    async def create_service(
        self,
        name: str,
        url: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> Optional[Service]:
        """Register a service. Returns the created record when the registry echoes it."""
        name, url = validate_registration(name, url)
        payload = {"name": name, "url": url, "metadata": metadata or {}}
        resp = await self._request("POST", "/services", json=payload)
        logger.info("Registered service %s at %s", name, url)
        try:
            return Service.model_validate(resp.json())
        except (ValueError, ValidationError):
            return None

    async def delete_service(self, service_id: str) -> None:
        await self._request("DELETE", f"/services/{service_id}")
        logger.info("Removed service %s", service_id)
