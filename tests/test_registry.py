"""Tests for the registry client and registration input validation."""

from __future__ import annotations

import os
from unittest.mock import patch

import httpx
import pytest

from healthdeck.config.models import RegistryConfig
from healthdeck.registry.client import (
    RegistryClient,
    build_metadata,
    parse_metadata_options,
    validate_registration,
)
from healthdeck.registry.errors import (
    InvalidServiceError,
    MetadataValidationError,
    RegistryError,
    RegistryUnavailableError,
    ServiceValidationError,
)

CLIENT_MODULE = "healthdeck.registry.client"

# ─── build_metadata ───


class TestBuildMetadata:
    def test_empty(self):
        assert build_metadata([]) == {}

    def test_trims_keys_and_values(self):
        assert build_metadata([(" team ", " ingest "), ("tier", "1")]) == {"team": "ingest", "tier": "1"}

    def test_duplicate_keys_rejected(self):
        with pytest.raises(MetadataValidationError, match="Duplicate keys"):
            build_metadata([("a", "1"), ("a", "2")])

    def test_duplicate_after_trim_rejected(self):
        with pytest.raises(MetadataValidationError, match="Duplicate keys"):
            build_metadata([("a", "1"), (" a", "2")])

    @pytest.mark.parametrize("pair", [("", "1"), ("a", ""), ("   ", "1"), ("a", "  ")])
    def test_blank_field_rejected(self, pair):
        with pytest.raises(MetadataValidationError, match="must be filled"):
            build_metadata([pair])


class TestParseMetadataOptions:
    def test_splits_on_first_equals(self):
        assert parse_metadata_options(["a=1", "query=x=y"]) == [("a", "1"), ("query", "x=y")]

    def test_missing_equals(self):
        with pytest.raises(MetadataValidationError, match="key=value"):
            parse_metadata_options(["justakey"])


class TestValidateRegistration:
    def test_valid(self):
        assert validate_registration(" Lyrics ", "http://x.local ") == ("Lyrics", "http://x.local")

    def test_name_required(self):
        with pytest.raises(ServiceValidationError, match="name is required"):
            validate_registration("  ", "http://x.local")

    def test_name_too_long(self):
        with pytest.raises(ServiceValidationError, match="less than 100"):
            validate_registration("x" * 101, "http://x.local")

    def test_invalid_url(self):
        with pytest.raises(ServiceValidationError, match="valid URL"):
            validate_registration("Lyrics", "lyrics.local")


# ─── RegistryClient ───


class TestRegistryClient:
    def test_from_config_reads_api_key_env(self):
        cfg = RegistryConfig(base_url="http://reg.local/", api_key_env="REG_KEY")
        with patch.dict(os.environ, {"REG_KEY": "s3cret"}):
            client = RegistryClient.from_config(cfg)
        assert client.base_url == "http://reg.local"
        assert client._headers["X-API-Key"] == "s3cret"

    def test_no_api_key_header_by_default(self):
        client = RegistryClient.from_config(RegistryConfig())
        assert "X-API-Key" not in client._headers

    @pytest.mark.asyncio
    async def test_list_services(self, mock_http, service_records):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(200, json=service_records)
        services = await RegistryClient("http://reg.local").list_services()
        assert [s.id for s in services] == ["svc-lyrics", "svc-covers", "svc-catalog"]
        args, _ = http.request.call_args
        assert args == ("GET", "http://reg.local/services")

    @pytest.mark.asyncio
    async def test_list_rejects_malformed_record(self, mock_http, service_records):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(
            200, json=[service_records[0], {"id": "bad", "name": "No URL"}]
        )
        with pytest.raises(InvalidServiceError, match=r"record 1 \(id='bad'\)"):
            await RegistryClient("http://reg.local").list_services()

    @pytest.mark.asyncio
    async def test_list_rejects_non_object_record(self, mock_http, service_records):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(200, json=["svc-lyrics", service_records[0]])
        with pytest.raises(InvalidServiceError, match=r"record 0 \(id=None\)"):
            await RegistryClient("http://reg.local").list_services()

    @pytest.mark.asyncio
    async def test_list_can_skip_malformed_records(self, mock_http, service_records):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(
            200, json=[service_records[0], {"id": "bad", "name": "No URL"}]
        )
        services = await RegistryClient("http://reg.local").list_services(skip_invalid=True)
        assert [s.id for s in services] == ["svc-lyrics"]

    @pytest.mark.asyncio
    async def test_list_rejects_non_array(self, mock_http):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(200, json={"services": []})
        with pytest.raises(RegistryError, match="JSON array"):
            await RegistryClient("http://reg.local").list_services()

    @pytest.mark.asyncio
    async def test_unreachable(self, mock_http):
        http = mock_http(CLIENT_MODULE)
        http.request.side_effect = httpx.ConnectError("Connection refused")
        with pytest.raises(RegistryUnavailableError, match="reg.local"):
            await RegistryClient("http://reg.local").list_services()

    @pytest.mark.asyncio
    async def test_error_uses_body_message(self, mock_http):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(409, json={"message": "Service name taken"})
        with pytest.raises(RegistryError) as excinfo:
            await RegistryClient("http://reg.local").create_service("Lyrics", "http://x.local")
        assert excinfo.value.status_code == 409
        assert excinfo.value.detail == "Service name taken"

    @pytest.mark.asyncio
    async def test_create_service_payload(self, mock_http, service_records):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(201, json=service_records[0])
        created = await RegistryClient("http://reg.local").create_service(
            "Lyrics Worker", "http://lyrics.local:8080/health", {"team": "ingest"}
        )
        assert created is not None
        assert created.id == "svc-lyrics"
        args, kwargs = http.request.call_args
        assert args == ("POST", "http://reg.local/services")
        assert kwargs["json"] == {
            "name": "Lyrics Worker",
            "url": "http://lyrics.local:8080/health",
            "metadata": {"team": "ingest"},
        }

    @pytest.mark.asyncio
    async def test_create_service_without_echo(self, mock_http):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(204)
        assert await RegistryClient("http://reg.local").create_service("Lyrics", "http://x.local") is None
        assert http.request.call_args.kwargs["json"]["metadata"] == {}

    @pytest.mark.asyncio
    async def test_invalid_registration_sends_nothing(self, mock_http):
        http = mock_http(CLIENT_MODULE)
        with pytest.raises(ServiceValidationError):
            await RegistryClient("http://reg.local").create_service("Lyrics", "not a url")
        http.request.assert_not_called()

    def test_duplicate_metadata_sends_nothing(self, mock_http):
        http = mock_http(CLIENT_MODULE)
        with pytest.raises(MetadataValidationError):
            build_metadata([("a", "1"), ("a", "2")])
        http.client_cls.assert_not_called()
        http.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_service(self, mock_http):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(204)
        await RegistryClient("http://reg.local").delete_service("svc-lyrics")
        args, _ = http.request.call_args
        assert args == ("DELETE", "http://reg.local/services/svc-lyrics")

    @pytest.mark.asyncio
    async def test_delete_missing_service(self, mock_http):
        http = mock_http(CLIENT_MODULE)
        http.request.return_value = httpx.Response(404, text="not found")
        with pytest.raises(RegistryError) as excinfo:
            await RegistryClient("http://reg.local").delete_service("nope")
        assert excinfo.value.status_code == 404
