from opentelemetry import metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource


def setup_metrics(app_name: str, app_env: str = "development") -> MeterProvider:
    """Configure OpenTelemetry metrics.

    Two readers are attached: a Prometheus pull reader, and a periodic
    console exporter so counters are visible without a scraper.
    """

    resource = Resource.create({"service.name": app_name, "deployment.environment": app_env})

    prometheus_reader = PrometheusMetricReader()
    console_reader = PeriodicExportingMetricReader(ConsoleMetricExporter())

    provider = MeterProvider(resource=resource, metric_readers=[prometheus_reader, console_reader])
    metrics.set_meter_provider(provider)
    return provider
