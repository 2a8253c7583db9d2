"""Device registry collaborator.

After a certificate is issued the device is created in the cloud device
registry with the certificate as its credential. The registry returns the
resource path the device should use for communication.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

import httpx
from google.auth.exceptions import GoogleAuthError
from opentelemetry import trace

from registration.metrics import registration_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DeviceRegistryError(Exception):
    """Raised when the device cannot be registered."""

    pass


class DeviceRegistry(ABC):
    """Registers a device and its certificate, returning a resource path."""

    @abstractmethod
    async def register(self, name: str, certificate_pem: str) -> str:
        raise NotImplementedError


class CloudIotDeviceRegistry(DeviceRegistry):
    """Cloud IoT Core device registry over its REST API."""

    # Host used in the resource path handed back to devices
    DEVICE_BASE_URL = "https://cloudiotdevice.googleapis.com"
    API_VERSION = "v1"
    CREDENTIAL_FORMAT = "RSA_X509_PEM"

    def __init__(
        self,
        client: httpx.AsyncClient,
        project_id: str,
        location_id: str,
        registry_id: str,
        expiration: timedelta = timedelta(0),
        auth: httpx.Auth | None = None,
    ) -> None:
        self._client = client
        self._project_id = project_id
        self._location_id = location_id
        self._registry_id = registry_id
        self._expiration = expiration
        self._auth = auth

    @property
    def parent(self) -> str:
        return (
            f"projects/{self._project_id}/locations/{self._location_id}"
            f"/registries/{self._registry_id}"
        )

    def build_device(self, name: str, certificate_pem: str) -> dict:
        """Build the Device resource body for the create call."""
        credential: dict = {
            "publicKey": {"format": self.CREDENTIAL_FORMAT, "key": certificate_pem},
        }
        if self._expiration:
            expires = datetime.now(timezone.utc) + self._expiration
            credential["expirationTime"] = expires.isoformat().replace("+00:00", "Z")
        return {"id": name, "credentials": [credential]}

    async def register(self, name: str, certificate_pem: str) -> str:
        """Create the device and return its resource path.

        Raises:
            DeviceRegistryError: If the registry call fails or returns no name.
        """
        with tracer.start_as_current_span("CloudIotDeviceRegistry.register") as span:
            span.set_attribute("device_name", name)
            span.set_attribute("registry", self.parent)

            try:
                response = await self._client.post(
                    f"/{self.API_VERSION}/{self.parent}/devices",
                    json=self.build_device(name, certificate_pem),
                    auth=self._auth if self._auth is not None else httpx.USE_CLIENT_DEFAULT,
                )
                response.raise_for_status()
                device_name = response.json()["name"]
            except (httpx.HTTPError, GoogleAuthError, ValueError, KeyError) as e:
                span.record_exception(e)
                registration_metrics.record_device_registered("failure")
                logger.error(
                    "device_registration_failed",
                    extra={"device_name": name, "registry": self.parent, "error": str(e)},
                )
                raise DeviceRegistryError(f"Error returned from device create: {e}") from e

            path = f"{self.DEVICE_BASE_URL}/{self.API_VERSION}/{device_name}"
            registration_metrics.record_device_registered("success")
            logger.debug("device_created", extra={"device_name": name, "path": path})
            return path
