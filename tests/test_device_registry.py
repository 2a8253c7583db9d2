"""Tests for the Cloud IoT device registry client."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import httpx
import pytest
from google.auth.exceptions import RefreshError

from registration.services.device_registry import CloudIotDeviceRegistry, DeviceRegistryError
from registration.services.registry_auth import (
    CLOUDIOT_SCOPE,
    BearerTokenAuth,
    GoogleCredentialsAuth,
    registry_auth,
)

CERT_PEM = "-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"


def _registry(handler, **kwargs) -> tuple[CloudIotDeviceRegistry, httpx.AsyncClient]:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://cloudiot.test"
    )
    registry = CloudIotDeviceRegistry(
        client,
        project_id="proj",
        location_id="us-central1",
        registry_id="devices",
        **kwargs,
    )
    return registry, client


class TestCloudIotDeviceRegistry:
    @pytest.mark.asyncio
    async def test_register_creates_device_and_returns_path(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "id": body["id"],
                    "name": "projects/proj/locations/us-central1/registries/devices/devices/123",
                },
            )

        registry, client = _registry(handler, expiration=timedelta(hours=720))
        async with client:
            path = await registry.register("sensor-01", CERT_PEM)

        assert path == (
            "https://cloudiotdevice.googleapis.com/v1/"
            "projects/proj/locations/us-central1/registries/devices/devices/123"
        )

        request = captured[0]
        assert request.method == "POST"
        assert request.url.path == (
            "/v1/projects/proj/locations/us-central1/registries/devices/devices"
        )
        body = json.loads(request.content)
        assert body["id"] == "sensor-01"
        credential = body["credentials"][0]
        assert credential["publicKey"] == {"format": "RSA_X509_PEM", "key": CERT_PEM}

        expires = datetime.fromisoformat(credential["expirationTime"].replace("Z", "+00:00"))
        expected = datetime.now(timezone.utc) + timedelta(hours=720)
        assert abs(expires - expected) < timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_zero_expiration_omits_expiration_time(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"name": "projects/p/devices/1"})

        registry, client = _registry(handler, expiration=timedelta(0))
        async with client:
            await registry.register("sensor-01", CERT_PEM)

        assert "expirationTime" not in bodies[0]["credentials"][0]

    @pytest.mark.asyncio
    async def test_access_token_sent_as_bearer(self):
        headers = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers.get("authorization"))
            return httpx.Response(200, json={"name": "projects/p/devices/1"})

        registry, client = _registry(handler, auth=BearerTokenAuth("ya29.token"))
        async with client:
            await registry.register("sensor-01", CERT_PEM)

        assert headers == ["Bearer ya29.token"]

    @pytest.mark.asyncio
    async def test_http_error_raises_registry_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"error": {"message": "already exists"}})

        registry, client = _registry(handler)
        async with client:
            with pytest.raises(DeviceRegistryError):
                await registry.register("sensor-01", CERT_PEM)

    @pytest.mark.asyncio
    async def test_transport_error_raises_registry_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        registry, client = _registry(handler)
        async with client:
            with pytest.raises(DeviceRegistryError, match="connection refused"):
                await registry.register("sensor-01", CERT_PEM)

    @pytest.mark.asyncio
    async def test_response_without_name_raises_registry_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "sensor-01"})

        registry, client = _registry(handler)
        async with client:
            with pytest.raises(DeviceRegistryError):
                await registry.register("sensor-01", CERT_PEM)


class FakeCredentials:
    """Stands in for google.auth credentials with a controllable expiry."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.token = None
        self.valid = False
        self.refreshes = 0

    def refresh(self, request) -> None:
        if self.fail:
            raise RefreshError("metadata server unavailable")
        self.refreshes += 1
        self.token = f"ya29.token-{self.refreshes}"
        self.valid = True


class TestRegistryAuth:
    @pytest.mark.asyncio
    async def test_google_credentials_refreshed_only_when_expired(self):
        headers = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers.get("authorization"))
            return httpx.Response(200, json={"name": "projects/p/devices/1"})

        credentials = FakeCredentials()
        registry, client = _registry(handler, auth=GoogleCredentialsAuth(credentials))
        async with client:
            await registry.register("sensor-01", CERT_PEM)
            await registry.register("sensor-02", CERT_PEM)
            credentials.valid = False
            await registry.register("sensor-03", CERT_PEM)

        assert credentials.refreshes == 2
        assert headers == [
            "Bearer ya29.token-1",
            "Bearer ya29.token-1",
            "Bearer ya29.token-2",
        ]

    def test_default_credentials_resolved_with_cloudiot_scope(self):
        credentials = FakeCredentials()
        with patch("google.auth.default", return_value=(credentials, "proj")) as mock_default:
            auth = GoogleCredentialsAuth()
            assert auth.token() == "ya29.token-1"
            assert auth.token() == "ya29.token-1"

        mock_default.assert_called_once_with(scopes=[CLOUDIOT_SCOPE])

    @pytest.mark.asyncio
    async def test_refresh_failure_raises_registry_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"name": "projects/p/devices/1"})

        auth = GoogleCredentialsAuth(FakeCredentials(fail=True))
        registry, client = _registry(handler, auth=auth)
        async with client:
            with pytest.raises(DeviceRegistryError, match="metadata server unavailable"):
                await registry.register("sensor-01", CERT_PEM)

    def test_static_token_overrides_google_credentials(self):
        assert isinstance(registry_auth("ya29.static"), BearerTokenAuth)
        assert isinstance(registry_auth(None), GoogleCredentialsAuth)
        assert isinstance(registry_auth(""), GoogleCredentialsAuth)
