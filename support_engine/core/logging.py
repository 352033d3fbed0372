"""Logging and tracing setup for the support engine."""

from __future__ import annotations

import logging
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from support_engine.core.config import Settings

# httpx logs full request URLs at INFO, which is noise for every WhatsApp send.
QUIET_LOGGERS = ("httpx", "httpcore", "asyncpg")


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure root logging from settings and return the application logger."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": settings.log_format}},
            "handlers": {
                "default": {"class": "logging.StreamHandler", "formatter": "default", "level": level},
            },
            "loggers": {name: {"level": max(level, logging.WARNING)} for name in QUIET_LOGGERS},
            "root": {"handlers": ["default"], "level": level},
        }
    )

    logger = logging.getLogger("support_engine")
    logger.info("Logging configured for %s (%s)", settings.app_name, settings.environment)
    return logger


def exporter_options(settings: Settings) -> dict[str, object]:
    """OTLP exporter keyword arguments; headers come as ``key=value`` pairs split by commas."""

    options: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        options["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = {}
    for pair in (settings.otel_exporter_otlp_headers or "").split(","):
        key, sep, value = pair.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    if headers:
        options["headers"] = headers
    return options


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install an OTLP tracer provider when tracing is enabled.

    The caller owns the returned provider and hands it to :func:`shutdown_tracer`
    on exit so buffered spans are flushed.
    """

    if not settings.otel_enabled:
        return None
    provider = TracerProvider(resource=Resource(attributes={"service.name": settings.otel_service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_options(settings))))
    trace.set_tracer_provider(provider)
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    if provider is not None:
        provider.shutdown()
