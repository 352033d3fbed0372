import logging

from support_engine.core.config import Settings
from support_engine.core.logging import QUIET_LOGGERS, configure_logging, exporter_options, init_tracer, shutdown_tracer


def test_configure_logging_quiets_http_clients():
    logger = configure_logging(Settings(log_level="debug"))

    assert logger.name == "support_engine"
    assert logging.getLogger().level == logging.DEBUG
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_exporter_options_parse_header_pairs():
    settings = Settings(
        otel_exporter_otlp_endpoint="http://collector:4318/v1/traces",
        otel_exporter_otlp_headers="x-api-key=abc, tenant = florist ,broken,=orphan",
    )

    assert exporter_options(settings) == {
        "endpoint": "http://collector:4318/v1/traces",
        "headers": {"x-api-key": "abc", "tenant": "florist"},
    }
    assert exporter_options(Settings(otel_exporter_otlp_endpoint=None, otel_exporter_otlp_headers=None)) == {}


def test_tracing_disabled_installs_nothing():
    provider = init_tracer(Settings(otel_enabled=False))

    assert provider is None
    shutdown_tracer(provider)
