"""Counter and summary metrics exposed on ``/metrics``."""
from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from threading import Lock
from time import perf_counter
from typing import Dict, Iterable, Iterator, List, Mapping, Tuple

LabelValues = Tuple[str, ...]
Sample = Tuple[str, LabelValues, float]


class Metric:
    """Named metric with a fixed set of label names.

    Subclasses report their state through :meth:`samples` as
    ``(suffix, label_values, value)`` triples, one per exposition line.
    """

    kind = "untyped"

    def __init__(
        self, name: str, *, description: str = "", label_names: Iterable[str] | None = None
    ) -> None:
        self.name = name
        self.description = description
        self.label_names: Tuple[str, ...] = tuple(label_names or ())
        self._lock = Lock()

    def _label_key(self, labels: Mapping[str, str] | None) -> LabelValues:
        labels = labels or {}
        if set(labels) != set(self.label_names):
            raise ValueError(
                f"Metric '{self.name}' takes labels {list(self.label_names)}, got {sorted(labels)}"
            )
        return tuple(str(labels[label]) for label in self.label_names)

    def samples(self) -> List[Sample]:
        raise NotImplementedError


class CounterMetric(Metric):
    kind = "counter"

    def __init__(
        self, name: str, *, description: str = "", label_names: Iterable[str] | None = None
    ) -> None:
        super().__init__(name, description=description, label_names=label_names)
        self._values: Dict[LabelValues, float] = defaultdict(float)

    def inc(self, amount: float = 1.0, *, labels: Mapping[str, str] | None = None) -> None:
        if amount < 0:
            raise ValueError("Counters can only increase")
        key = self._label_key(labels)
        with self._lock:
            self._values[key] += amount

    def value(self, *, labels: Mapping[str, str] | None = None) -> float:
        key = self._label_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def samples(self) -> List[Sample]:
        with self._lock:
            return [("", key, value) for key, value in self._values.items()]


class DistributionMetric(Metric):
    """Count and sum of observed values, rendered as a Prometheus summary."""

    kind = "summary"

    def __init__(
        self, name: str, *, description: str = "", label_names: Iterable[str] | None = None
    ) -> None:
        super().__init__(name, description=description, label_names=label_names)
        self._values: Dict[LabelValues, List[float]] = defaultdict(lambda: [0.0, 0.0])

    def observe(self, value: float, *, labels: Mapping[str, str] | None = None) -> None:
        key = self._label_key(labels)
        with self._lock:
            totals = self._values[key]
            totals[0] += 1
            totals[1] += value

    def samples(self) -> List[Sample]:
        with self._lock:
            lines: List[Sample] = []
            for key, (count, total) in self._values.items():
                lines.append(("_count", key, count))
                lines.append(("_sum", key, total))
            return lines


@contextmanager
def track_duration(metric: DistributionMetric, *, labels: Mapping[str, str] | None = None) -> Iterator[None]:
    start = perf_counter()
    try:
        yield
    finally:
        metric.observe(perf_counter() - start, labels=labels)
