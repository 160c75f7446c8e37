"""Registry proxy endpoints: list, register, and remove services."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field

from healthdeck.api.auth import require_api_key
from healthdeck.registry.client import RegistryClient, build_metadata
from healthdeck.registry.errors import (
    InvalidServiceError,
    MetadataValidationError,
    RegistryError,
    RegistryUnavailableError,
    ServiceValidationError,
)
from healthdeck.registry.models import Service

router = APIRouter(tags=["services"])


class MetadataPair(BaseModel):
    key: str
    value: str


class ServiceCreate(BaseModel):
    name: str
    url: str
    # Pairs rather than a mapping so duplicate keys can be reported.
    metadata: list[MetadataPair] = Field(default_factory=list)


def get_registry(request: Request) -> RegistryClient:
    return RegistryClient.from_config(request.app.state.config.registry)


def registry_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (MetadataValidationError, ServiceValidationError)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, RegistryError):
        if exc.status_code == 404:
            return HTTPException(status_code=404, detail=exc.detail)
        return HTTPException(status_code=502, detail=f"Registry error {exc.status_code}: {exc.detail}")
    return HTTPException(status_code=502, detail=str(exc))


async def fetch_services(request: Request, skip_invalid: bool = False) -> list[Service]:
    try:
        return await get_registry(request).list_services(skip_invalid=skip_invalid)
    except (InvalidServiceError, RegistryError, RegistryUnavailableError) as exc:
        raise registry_http_error(exc) from exc


def service_to_dict(service: Service) -> dict[str, Any]:
    return service.model_dump(mode="json")


@router.get("/services")
async def list_services(request: Request) -> list[dict[str, Any]]:
    services = await fetch_services(request, skip_invalid=True)
    return [service_to_dict(s) for s in services]


@router.post("/services", status_code=201, dependencies=[Depends(require_api_key)])
async def create_service(request: Request, body: ServiceCreate) -> dict[str, Any]:
    try:
        metadata = build_metadata((p.key, p.value) for p in body.metadata)
        created = await get_registry(request).create_service(body.name, body.url, metadata)
    except (
        MetadataValidationError,
        ServiceValidationError,
        RegistryError,
        RegistryUnavailableError,
    ) as exc:
        raise registry_http_error(exc) from exc
    if created is None:
        return {"name": body.name.strip(), "url": body.url.strip(), "metadata": metadata}
    return service_to_dict(created)


@router.delete("/services/{service_id}", status_code=204, dependencies=[Depends(require_api_key)])
async def delete_service(request: Request, service_id: str) -> Response:
    try:
        await get_registry(request).delete_service(service_id)
    except (RegistryError, RegistryUnavailableError) as exc:
        raise registry_http_error(exc) from exc
    return Response(status_code=204)
