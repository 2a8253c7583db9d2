from src.main import health_check, lifespan, validation_exception_handler
from src.registration.api.devices import register, start, warmup
from src.registration.api.schemas import ErrorResponse
from src.registration.ca.certificate_factory import CertificateFactory, IssuedCertificate
from src.registration.ca.store import CAKeyPair
from src.registration.metrics import ca_loaded_gauge
from src.shared.config import Settings

# Pydantic Settings
Settings.model_config
Settings.APP_NAME
Settings.LOG_LEVEL
Settings.REGISTRY_API_URL
Settings.REGISTRY_ACCESS_TOKEN

# Pydantic models
ErrorResponse.detail

# Public API used by callers and tests
CAKeyPair.certificate_pem
CertificateFactory.expiration
IssuedCertificate.subject_key_id
IssuedCertificate.not_before

# Observable gauge registered with the meter
ca_loaded_gauge

# FastAPI
health_check
lifespan
validation_exception_handler
register
start
warmup

# httpx auth hooks
from src.registration.services.registry_auth import BearerTokenAuth, GoogleCredentialsAuth

BearerTokenAuth.auth_flow
GoogleCredentialsAuth.sync_auth_flow
GoogleCredentialsAuth.async_auth_flow
