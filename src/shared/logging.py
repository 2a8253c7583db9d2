import logging
import sys

from opentelemetry._logs import set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, ConsoleLogRecordExporter
from opentelemetry.sdk.resources import Resource

from .config import settings


def setup_logging() -> LoggerProvider:
    """Route standard logging through an OpenTelemetry console exporter."""

    logger_provider = LoggerProvider(resource=Resource.create({"service.name": settings.APP_NAME}))
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(ConsoleLogRecordExporter()))
    set_logger_provider(logger_provider)

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # OTel handler picks up the structured ``extra`` fields as log attributes
    root.addHandler(LoggingHandler(level=level, logger_provider=logger_provider))

    # Plain stdout handler, OTel batching delays console output
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root.addHandler(stream_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger_provider


logger = logging.getLogger("device_registration")
