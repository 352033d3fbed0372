"""In-process registry of the support engine's metrics."""
from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import MutableMapping, Tuple

from .base import CounterMetric, DistributionMetric, Metric


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


SUPPORT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name="support_inbound_messages_total",
        metric_type="counter",
        description="Inbound customer or seller messages handled.",
        label_names=("channel",),
    ),
    MetricDefinition(
        name="support_nlu_llm_fallbacks_total",
        metric_type="counter",
        description="LLM classification attempts abandoned in favour of the rule result.",
        label_names=("reason",),
    ),
    MetricDefinition(
        name="support_nlu_classify_seconds",
        metric_type="distribution",
        description="Time spent classifying one inbound message.",
    ),
    MetricDefinition(
        name="support_tickets_created_total",
        metric_type="counter",
        description="Support tickets opened.",
        label_names=("type",),
    ),
    MetricDefinition(
        name="support_whatsapp_sends_total",
        metric_type="counter",
        description="Outbound WhatsApp sends by outcome.",
        label_names=("outcome",),
    ),
    MetricDefinition(
        name="support_reminders_sent_total",
        metric_type="counter",
        description="Seller reminders issued by the queue worker.",
    ),
    MetricDefinition(
        name="support_escalations_total",
        metric_type="counter",
        description="Tickets closed by escalation after seller silence.",
    ),
)


class MetricsRegistry:
    """Thread-safe name -> metric map."""

    def __init__(self, definitions: Tuple[MetricDefinition, ...] = ()) -> None:
        self._metrics: MutableMapping[str, Metric] = {}
        self._lock = Lock()
        for definition in definitions:
            self.register(definition)

    def register(self, definition: MetricDefinition) -> Metric:
        if definition.metric_type == "counter":
            return self.counter(
                definition.name, description=definition.description, label_names=definition.label_names
            )
        if definition.metric_type == "distribution":
            return self.distribution(
                definition.name, description=definition.description, label_names=definition.label_names
            )
        raise ValueError(f"Unknown metric type '{definition.metric_type}'")

    def _get_or_create(self, name: str, factory) -> Metric:
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = factory()
            return self._metrics[name]

    def counter(self, name: str, *, description: str = "", label_names: Tuple[str, ...] = ()) -> CounterMetric:
        metric = self._get_or_create(
            name, lambda: CounterMetric(name, description=description, label_names=label_names)
        )
        if not isinstance(metric, CounterMetric):
            raise TypeError(f"Metric '{name}' already exists with a different type")
        return metric

    def distribution(
        self, name: str, *, description: str = "", label_names: Tuple[str, ...] = ()
    ) -> DistributionMetric:
        metric = self._get_or_create(
            name, lambda: DistributionMetric(name, description=description, label_names=label_names)
        )
        if not isinstance(metric, DistributionMetric):
            raise TypeError(f"Metric '{name}' already exists with a different type")
        return metric

    def metrics(self) -> Tuple[Metric, ...]:
        with self._lock:
            return tuple(self._metrics.values())


def render_prometheus(registry: MetricsRegistry) -> str:
    """Render ``registry`` in the Prometheus text exposition format."""

    lines: list[str] = []
    for metric in registry.metrics():
        lines.append(f"# HELP {metric.name} {metric.description}")
        lines.append(f"# TYPE {metric.name} {metric.kind}")
        for suffix, labels, value in metric.samples():
            label_text = ""
            if labels:
                pairs = [f'{name}="{label}"' for name, label in zip(metric.label_names, labels)]
                label_text = "{" + ",".join(pairs) + "}"
            lines.append(f"{metric.name}{suffix}{label_text} {value}")
    return "\n".join(lines) + "\n"
