from opentelemetry import metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource


def setup_metrics(app_name: str) -> MeterProvider:
    """Install the process meter provider with Prometheus and console readers."""

    resource = Resource.create({"service.name": app_name})

    # Pull reader; the registry is exposed through prometheus_client
    prometheus_reader = PrometheusMetricReader()

    console_reader = PeriodicExportingMetricReader(
        ConsoleMetricExporter(), export_interval_millis=60_000
    )

    provider = MeterProvider(resource=resource, metric_readers=[prometheus_reader, console_reader])
    metrics.set_meter_provider(provider)
    return provider
