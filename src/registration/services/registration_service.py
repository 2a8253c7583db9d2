"""Registration service: issue a device certificate and register the device."""

import logging
from dataclasses import dataclass

from opentelemetry import trace
from starlette.concurrency import run_in_threadpool

from registration.ca.certificate_factory import CertificateFactory
from registration.services.device_registry import DeviceRegistry

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class RegisteredDevice:
    """Outcome of a successful registration."""

    name: str
    private_key_pem: str
    certificate_pem: str
    path: str


class RegistrationService:
    """Issues credentials for a device and records it in the device registry."""

    def __init__(self, factory: CertificateFactory, registry: DeviceRegistry) -> None:
        self.factory = factory
        self.registry = registry

    async def register_device(self, name: str) -> RegisteredDevice:
        """Issue a certificate for ``name`` and register it.

        Issuance is CPU bound and runs in the threadpool.

        Raises:
            IssuanceError: If the certificate cannot be issued.
            DeviceRegistryError: If the registry rejects the device.
        """
        with tracer.start_as_current_span("RegistrationService.register_device") as span:
            span.set_attribute("device_name", name)

            issued = await run_in_threadpool(self.factory.issue, name)
            path = await self.registry.register(name, issued.certificate_pem)

            logger.info(
                "device_registered",
                extra={"device_name": name, "serial": issued.serial_hex, "path": path},
            )
            return RegisteredDevice(
                name=name,
                private_key_pem=issued.private_key_pem,
                certificate_pem=issued.certificate_pem,
                path=path,
            )
