import asyncio
import logging
import ssl
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from main import app, build_bootstrap_service, run
from nodebootstrap.api import bootstrap as bootstrap_api
from shared.config import Settings
from shared.logging import setup_logging
from shared.metrics import setup_metrics
from shared.tls import TLSConfig, harden_ssl_context
from shared.tracing import setup_tracing

client = TestClient(app)


def test_setup_logging():
    """Test that setup_logging configures OTel provider."""
    with patch("shared.logging.set_logger_provider") as mock_set_provider, \
         patch("shared.logging.LoggerProvider") as mock_provider_cls, \
         patch("shared.logging.BatchLogRecordProcessor"), \
         patch("shared.logging.ConsoleLogRecordExporter"):

        setup_logging()

        mock_provider_cls.assert_called_once()
        mock_set_provider.assert_called_once()



def test_setup_logging_does_not_stack_handlers():
    """Repeated startups replace the root handlers instead of adding more."""
    root = logging.getLogger()
    before = list(root.handlers)

    with patch("shared.logging.set_logger_provider"), \
         patch("shared.logging.LoggerProvider"), \
         patch("shared.logging.BatchLogRecordProcessor"), \
         patch("shared.logging.ConsoleLogRecordExporter"):
        setup_logging()
        after_first = list(root.handlers)
        setup_logging()
        after_second = list(root.handlers)

    assert len(after_first) == len(after_second)
    assert len([h for h in after_second if h not in before]) == 2


def test_setup_tracing():
    """Test that setup_tracing installs a tracer provider."""
    with patch("shared.tracing.TracerProvider") as mock_provider_cls, \
         patch("shared.tracing.trace.set_tracer_provider") as mock_set_provider, \
         patch("shared.tracing.BatchSpanProcessor"), \
         patch("shared.tracing.ConsoleSpanExporter"):

        provider = setup_tracing("test-app")

        mock_provider_cls.assert_called_once()
        mock_set_provider.assert_called_once_with(provider)
        provider.add_span_processor.assert_called_once()

def test_setup_metrics():
    """Test that setup_metrics configures OTel meter provider."""
    with patch("shared.metrics.MeterProvider") as mock_provider_cls, \
         patch("shared.metrics.metrics.set_meter_provider") as mock_set_provider, \
         patch("shared.metrics.PrometheusMetricReader"), \
         patch("shared.metrics.PeriodicExportingMetricReader"), \
         patch("shared.metrics.ConsoleMetricExporter"):

        provider = setup_metrics("test-app")

        mock_provider_cls.assert_called_once()
        mock_set_provider.assert_called_once_with(provider)


def test_settings_parse_ca_names_and_listen():
    settings = Settings(KEYSTORE_CA_NAMES="ca, etcd-client,,", SERVER_LISTEN=":3988")

    assert settings.ca_names == ["ca", "etcd-client"]
    assert settings.listen_address == ("0.0.0.0", 3988)


def test_settings_listen_with_host():
    assert Settings(SERVER_LISTEN="127.0.0.1:8443").listen_address == ("127.0.0.1", 8443)


def test_harden_ssl_context():
    context = harden_ssl_context(ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER))

    assert context.minimum_version == ssl.TLSVersion.TLSv1_2
    assert context.options & ssl.OP_CIPHER_SERVER_PREFERENCE


def test_tls_config_without_certificates_leaves_ssl_unset():
    config = TLSConfig(app)
    config.load()
    assert config.ssl is None


def test_run_requires_server_certificate():
    with patch("main.settings") as mock_settings, patch("main.uvicorn") as mock_uvicorn:
        mock_settings.SERVER_CERTIFICATE_PATH = None
        mock_settings.SERVER_KEY_PATH = None

        with pytest.raises(RuntimeError, match="SERVER_CERTIFICATE_PATH"):
            run()

        mock_uvicorn.Server.assert_not_called()


def test_build_bootstrap_service(keystore_dir):
    with patch("main.settings") as mock_settings, \
         patch("main.new_identity_resolver") as mock_new_resolver:
        mock_settings.KEYSTORE_PATH = str(keystore_dir)
        mock_settings.ca_names = ["ca"]
        mock_settings.CLOUD_PROVIDER = "aws"
        mock_settings.AWS_REGION = "us-east-1"

        service = build_bootstrap_service()

    assert service.keystore.names == ["ca"]
    assert service.resolver is mock_new_resolver.return_value
    mock_new_resolver.assert_called_once_with("aws", "us-east-1")


def test_build_bootstrap_service_without_provider(keystore_dir):
    with patch("main.settings") as mock_settings:
        mock_settings.KEYSTORE_PATH = str(keystore_dir)
        mock_settings.ca_names = ["ca"]
        mock_settings.CLOUD_PROVIDER = ""

        service = build_bootstrap_service()

    assert service.resolver is None


def test_health_check():
    """Test the /health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "service" in response.json()


def test_app_startup_and_lifespan(monkeypatch):
    """Test that lifespan startup wires the bootstrap service."""
    monkeypatch.setattr(bootstrap_api, "_bootstrap_service", None)
    service = MagicMock()

    with patch("shared.tracing.TracerProvider"), \
         patch("shared.tracing.BatchSpanProcessor"), \
         patch("shared.tracing.ConsoleSpanExporter"), \
         patch("shared.tracing.trace"), \
         patch("main.LoggingInstrumentor"), \
         patch("main.BotocoreInstrumentor"), \
         patch("main.build_bootstrap_service", return_value=service), \
         patch("shared.logging.LoggerProvider"), \
         patch("shared.logging.BatchLogRecordProcessor"), \
         patch("shared.logging.set_logger_provider"), \
         patch("shared.logging.ConsoleLogRecordExporter"), \
         patch("shared.metrics.MeterProvider"), \
         patch("shared.metrics.PrometheusMetricReader"), \
         patch("shared.metrics.PeriodicExportingMetricReader"), \
         patch("shared.metrics.metrics.set_meter_provider"):

        with TestClient(app) as local_client:
            response = local_client.get("/health")
            assert response.status_code == 200
            assert bootstrap_api.get_bootstrap_service() is service


def test_app_startup_fails_on_keystore_error(monkeypatch, tmp_path):
    """The service refuses to start with an incomplete trust store."""
    monkeypatch.setattr(bootstrap_api, "_bootstrap_service", None)

    with patch("main.setup_logging"), \
         patch("main.setup_tracing"), \
         patch("main.setup_metrics"), \
         patch("main.LoggingInstrumentor"), \
         patch("main.BotocoreInstrumentor"), \
         patch("main.settings") as mock_settings:
        mock_settings.KEYSTORE_PATH = str(tmp_path)
        mock_settings.ca_names = ["ca"]

        with pytest.raises(Exception, match="reading 'ca' certificate"):
            with TestClient(app):
                pass

    with pytest.raises(RuntimeError):
        bootstrap_api.get_bootstrap_service()


def test_app_startup_builds_service_off_event_loop(monkeypatch):
    """Keystore loading and region discovery block, so they run in a worker thread."""
    monkeypatch.setattr(bootstrap_api, "_bootstrap_service", None)
    seen = {}

    def fake_build():
        try:
            asyncio.get_running_loop()
            seen["in_loop"] = True
        except RuntimeError:
            seen["in_loop"] = False
        return MagicMock()

    with patch("main.setup_logging"), \
         patch("main.setup_tracing"), \
         patch("main.setup_metrics"), \
         patch("main.LoggingInstrumentor"), \
         patch("main.BotocoreInstrumentor"), \
         patch("main.build_bootstrap_service", side_effect=fake_build):

        with TestClient(app):
            pass

    assert seen == {"in_loop": False}
