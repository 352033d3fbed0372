"""Metrics primitives and the process-wide registry."""

from .base import CounterMetric, DistributionMetric, track_duration
from .registry import SUPPORT_METRIC_DEFINITIONS, MetricDefinition, MetricsRegistry, render_prometheus

metrics_registry = MetricsRegistry(SUPPORT_METRIC_DEFINITIONS)

__all__ = [
    "CounterMetric",
    "DistributionMetric",
    "MetricDefinition",
    "MetricsRegistry",
    "SUPPORT_METRIC_DEFINITIONS",
    "metrics_registry",
    "render_prometheus",
    "track_duration",
]
