"""OpenTelemetry metrics for the bootstrap service."""

from collections.abc import Iterator

from opentelemetry import metrics

meter = metrics.get_meter("nodebootstrap")

# Bootstrap endpoint
bootstrap_requests_total = meter.create_counter(
    name="nodebootstrap_requests_total",
    description="Total bootstrap requests by result",
    unit="1",
)

# Identity resolution
identity_resolutions_total = meter.create_counter(
    name="nodebootstrap_identity_resolutions_total",
    description="Total node identity resolutions by result",
    unit="1",
)

identity_resolution_duration = meter.create_histogram(
    name="nodebootstrap_identity_resolution_duration_seconds",
    description="Node identity resolution duration in seconds",
    unit="s",
)

# Issuance
certificates_issued_total = meter.create_counter(
    name="nodebootstrap_certificates_issued_total",
    description="Total node certificates signed",
    unit="1",
)

certificate_generation_duration = meter.create_histogram(
    name="nodebootstrap_certificate_generation_duration_seconds",
    description="Certificate generation duration in seconds",
    unit="s",
)

# Keystore gauge, set once at startup
_keystore_authorities: int = 0


def _get_keystore_authorities(
    options: metrics.CallbackOptions,
) -> Iterator[metrics.Observation]:
    """Callback to report how many CAs the keystore holds."""
    yield metrics.Observation(_keystore_authorities, {})


keystore_authorities_gauge = meter.create_observable_gauge(
    name="nodebootstrap_keystore_authorities",
    description="Certificate authorities loaded into the keystore",
    unit="1",
    callbacks=[_get_keystore_authorities],
)


class BootstrapMetrics:
    """Facade for bootstrap metrics with proper labels."""

    def record_bootstrap_request(self, result: str) -> None:
        """Labels: result=success|no_body|decode_error|version_mismatch|error"""
        bootstrap_requests_total.add(1, {"result": result})

    def record_identity_resolution(self, result: str, duration_seconds: float) -> None:
        """Labels: result=success|malformed|not_found|ambiguous|error"""
        identity_resolutions_total.add(1, {"result": result})
        identity_resolution_duration.record(duration_seconds)

    def record_certificate_generated(self, duration_seconds: float) -> None:
        certificate_generation_duration.record(duration_seconds)

    def record_certificate_issued(self, name: str) -> None:
        """Labels: name=kubelet|kube-proxy"""
        certificates_issued_total.add(1, {"name": name})

    def record_keystore_loaded(self, count: int) -> None:
        global _keystore_authorities
        _keystore_authorities = count


# Singleton instance
bootstrap_metrics = BootstrapMetrics()
