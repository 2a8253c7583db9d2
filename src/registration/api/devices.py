"""Device registration API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from registration.api.auth import require_token
from registration.api.schemas import RegistrationRequest, RegistrationResponse
from registration.ca.errors import CALoadError, IssuanceError
from registration.ca.store import CAStore
from registration.services.device_registry import DeviceRegistryError
from registration.services.registration_service import RegistrationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["devices"])

# Global instances, injected at startup
_ca_store: CAStore | None = None
_registration_service: RegistrationService | None = None


def set_registration_service(store: CAStore, service: RegistrationService) -> None:
    """Set the global CA store and registration service."""
    global _ca_store, _registration_service
    _ca_store = store
    _registration_service = service


def get_ca_store() -> CAStore:
    if _ca_store is None:
        raise RuntimeError("CAStore not initialized")
    return _ca_store


def get_registration_service() -> RegistrationService:
    if _registration_service is None:
        raise RuntimeError("RegistrationService not initialized")
    return _registration_service


@router.post(
    "/",
    response_model=RegistrationResponse,
    dependencies=[Depends(require_token)],
)
async def register(
    body: RegistrationRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> RegistrationResponse:
    """
    Issue a certificate and key for a device and register it.

    - Auth: Authorization: Bearer <token>
    - Returns: 200 with the device private key and registry path
    - Errors: 400 BAD_REQUEST, 401 UNAUTHORIZED, 500 INTERNAL_SERVER_ERROR
    """
    try:
        device = await service.register_device(body.name)
    except IssuanceError as e:
        logger.warning(
            "registration_failed",
            extra={"device_name": body.name, "stage": "issuance", "error": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate a new RSA certificate and key",
        ) from e
    except DeviceRegistryError as e:
        logger.warning(
            "registration_failed",
            extra={"device_name": body.name, "stage": "registry", "error": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register device",
        ) from e

    logger.debug("device_registration_completed", extra={"device_name": device.name})
    return RegistrationResponse(name=device.name, key=device.private_key_pem, path=device.path)


@router.get("/_ah/start", include_in_schema=False)
async def start() -> dict[str, str]:
    logger.info("instance_starting")
    return {"status": "started"}


@router.get("/_ah/warmup", include_in_schema=False)
def warmup(store: CAStore = Depends(get_ca_store)) -> dict[str, str]:
    """Load the CA ahead of the first registration; failures are retried later."""
    logger.info("instance_warming_up")
    try:
        store.load()
    except CALoadError:
        # Already logged by the store; the next registration retries the load
        return {"status": "ca_unavailable"}
    return {"status": "warm"}
