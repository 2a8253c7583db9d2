from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from prometheus_client import make_asgi_app
from registration.api import devices as devices_api
from registration.api.schemas import ErrorResponse
from registration.ca.certificate_factory import CertificateFactory
from registration.ca.store import CAStore
from registration.ca.subject import SubjectTemplate
from registration.services.device_registry import CloudIotDeviceRegistry
from registration.services.registration_service import RegistrationService
from registration.services.registry_auth import registry_auth
from shared.config import settings
from shared.logging import setup_logging
from shared.metrics import setup_metrics


# Setup OpenTelemetry Tracing
def setup_tracing() -> None:
    resource = Resource.create({"service.name": settings.APP_NAME})
    provider = TracerProvider(resource=resource)

    processor = BatchSpanProcessor(ConsoleSpanExporter())
    provider.add_span_processor(processor)

    trace.set_tracer_provider(provider)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    setup_logging()
    setup_tracing()
    setup_metrics(settings.APP_NAME)

    LoggingInstrumentor().instrument(set_logging_format=True)
    HTTPXClientInstrumentor().instrument()

    # The CA is loaded lazily by the first registration or warmup request
    ca_store = CAStore(settings.CA_FILE, settings.CA_KEY_FILE)
    factory = CertificateFactory(
        ca_store,
        SubjectTemplate.from_settings(settings),
        expiration=settings.cert_expiration,
    )

    async with httpx.AsyncClient(base_url=settings.REGISTRY_API_URL, timeout=30.0) as client:
        registry = CloudIotDeviceRegistry(
            client,
            project_id=settings.PROJECTID,
            location_id=settings.LOCATIONID,
            registry_id=settings.REGISTRYID,
            expiration=settings.registry_expiration,
            auth=registry_auth(settings.REGISTRY_ACCESS_TOKEN),
        )
        devices_api.set_registration_service(ca_store, RegistrationService(factory, registry))

        yield
    # Shutdown: the registry client is closed by the context manager above


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST"],
    allow_headers=["Content-Type", "Authorization"],
)

# Instrument FastAPI
FastAPIInstrumentor.instrument_app(app)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed registration bodies as 400 rather than 422."""
    body = ErrorResponse(error="Invalid request", code="BAD_REQUEST", detail=str(exc.errors()))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok", "service": settings.APP_NAME}


# Prometheus scrape endpoint backed by the PrometheusMetricReader registry
app.mount("/metrics", make_asgi_app())

# Registration routes are last, "/" catches the device POST
app.include_router(devices_api.router)
