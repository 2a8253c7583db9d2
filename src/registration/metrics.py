"""OpenTelemetry metrics for the registration module."""

from collections.abc import Iterator

from opentelemetry import metrics

meter = metrics.get_meter("registration")

# ============================================================================
# Certificate Authority
# ============================================================================

ca_loads_total = meter.create_counter(
    name="registration_ca_loads_total",
    description="CA load attempts by result",
    unit="1",
)

_ca_loaded = False


def _get_ca_loaded(
    options: metrics.CallbackOptions,
) -> Iterator[metrics.Observation]:
    """Callback to report CA loaded status."""
    yield metrics.Observation(1 if _ca_loaded else 0, {})


ca_loaded_gauge = meter.create_observable_gauge(
    name="registration_ca_loaded",
    description="CA certificate and key loaded (1=yes, 0=no)",
    unit="1",
    callbacks=[_get_ca_loaded],
)

# ============================================================================
# Certificate issuance
# ============================================================================

certificates_issued_total = meter.create_counter(
    name="registration_certificates_issued_total",
    description="Total device certificates issued",
    unit="1",
)

certificate_issuance_failures_total = meter.create_counter(
    name="registration_certificate_issuance_failures_total",
    description="Total failed certificate issuances by error type",
    unit="1",
)

certificate_issuance_duration = meter.create_histogram(
    name="registration_certificate_issuance_duration_seconds",
    description="Certificate issuance duration in seconds",
    unit="s",
)

# ============================================================================
# Device registry
# ============================================================================

devices_registered_total = meter.create_counter(
    name="registration_devices_registered_total",
    description="Device registry calls by result",
    unit="1",
)


class RegistrationMetrics:
    """Facade for registration metrics with proper labels."""

    def record_ca_load(self, result: str) -> None:
        """Record a CA load attempt. Labels: result=success|failure"""
        global _ca_loaded
        ca_loads_total.add(1, {"result": result})
        if result == "success":
            _ca_loaded = True

    def record_certificate_issued(self, duration_seconds: float) -> None:
        certificates_issued_total.add(1)
        certificate_issuance_duration.record(duration_seconds)

    def record_issuance_failed(self, error_type: str) -> None:
        """Record a failed issuance. Labels: error_type=<exception class>"""
        certificate_issuance_failures_total.add(1, {"error_type": error_type})

    def record_device_registered(self, result: str) -> None:
        """Record a device registry call. Labels: result=success|failure"""
        devices_registered_total.add(1, {"result": result})


# Singleton instance
registration_metrics = RegistrationMetrics()
