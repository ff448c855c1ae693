"""In-process metrics for extraction runs.

Counters and histograms are the structured event stream that lets an
operator tell "the source had no rows" apart from "the query failed":
every key, shard and job outcome is counted with its table label.

Metric types:
- Counter: monotonically increasing value
- Gauge: value that can go up or down
- Histogram: distribution of observed values

Example:
    >>> from tablepull.observability.metrics import MetricsRegistry, ExtractionMetrics
    >>> metrics = ExtractionMetrics(MetricsRegistry())
    >>> metrics.record_key("LLDS_HDR", rows=120)
    >>> metrics.record_key("LLDS_HDR", failed=True)
    >>> metrics.keys.labels(table="LLDS_HDR", status="failed").value
    1.0
    >>> print(metrics.registry.export_prometheus())  # doctest: +SKIP
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Labels:
    """Immutable, hashable label set."""

    pairs: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> Labels:
        if not d:
            return cls()
        return cls(tuple(sorted((k, str(v)) for k, v in d.items())))

    def to_dict(self) -> dict[str, str]:
        return dict(self.pairs)

    def render(self, extra: dict[str, str] | None = None) -> str:
        """Prometheus label block, e.g. ``{status="ok",table="HDR"}``."""
        items = list(self.pairs) + sorted((extra or {}).items())
        if not items:
            return ""
        return "{" + ",".join(f'{k}="{v}"' for k, v in items) + "}"


class _Metric:
    """Shared storage and locking for labelled metrics."""

    kind = "untyped"

    def __init__(self, name: str, description: str = "", labels: list[str] | None = None):
        self.name = name
        self.description = description
        self.label_names = tuple(labels or ())
        self._lock = threading.Lock()
        self._values: dict[Labels, Any] = {}

    def _check(self, labels: Labels) -> Labels:
        given = {k for k, _ in labels.pairs}
        if self.label_names and given != set(self.label_names):
            raise ValueError(f"{self.name} expects labels {sorted(self.label_names)}, got {sorted(given)}")
        return labels

    def collect(self) -> list[dict[str, Any]]:
        with self._lock:
            return [
                {"name": self.name, "type": self.kind, "labels": labels.to_dict(), "value": value}
                for labels, value in self._values.items()
            ]


class Counter(_Metric):
    """A monotonically increasing counter."""

    kind = "counter"

    def labels(self, **kwargs: Any) -> CounterChild:
        return CounterChild(self, self._check(Labels.from_dict(kwargs)))

    def inc(self, value: float = 1.0) -> None:
        self.labels().inc(value)


class CounterChild:
    """Counter bound to one label set."""

    def __init__(self, counter: Counter, labels: Labels):
        self._counter = counter
        self._labels = labels

    def inc(self, value: float = 1.0) -> None:
        if value < 0:
            raise ValueError("Counter can only increase")
        with self._counter._lock:
            self._counter._values[self._labels] = self._counter._values.get(self._labels, 0.0) + value

    @property
    def value(self) -> float:
        with self._counter._lock:
            return self._counter._values.get(self._labels, 0.0)


class Gauge(_Metric):
    """A value that can go up or down (e.g. busy workers)."""

    kind = "gauge"

    def labels(self, **kwargs: Any) -> GaugeChild:
        return GaugeChild(self, self._check(Labels.from_dict(kwargs)))

    def set(self, value: float) -> None:
        self.labels().set(value)


class GaugeChild:
    """Gauge bound to one label set."""

    def __init__(self, gauge: Gauge, labels: Labels):
        self._gauge = gauge
        self._labels = labels

    def set(self, value: float) -> None:
        with self._gauge._lock:
            self._gauge._values[self._labels] = float(value)

    def inc(self, value: float = 1.0) -> None:
        with self._gauge._lock:
            self._gauge._values[self._labels] = self._gauge._values.get(self._labels, 0.0) + value

    def dec(self, value: float = 1.0) -> None:
        self.inc(-value)

    @property
    def value(self) -> float:
        with self._gauge._lock:
            return self._gauge._values.get(self._labels, 0.0)


class Histogram(_Metric):
    """Distribution of observed values (durations, rows per key)."""

    kind = "histogram"

    DEFAULT_BUCKETS = (0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0, 3600.0, float("inf"))

    def __init__(
        self,
        name: str,
        description: str = "",
        labels: list[str] | None = None,
        buckets: tuple[float, ...] | None = None,
    ):
        super().__init__(name, description, labels)
        self.buckets = tuple(buckets or self.DEFAULT_BUCKETS)

    def labels(self, **kwargs: Any) -> HistogramChild:
        return HistogramChild(self, self._check(Labels.from_dict(kwargs)))

    def observe(self, value: float) -> None:
        self.labels().observe(value)

    def _empty(self) -> dict[str, Any]:
        return {"buckets": dict.fromkeys(self.buckets, 0), "sum": 0.0, "count": 0}


class HistogramChild:
    """Histogram bound to one label set."""

    def __init__(self, histogram: Histogram, labels: Labels):
        self._histogram = histogram
        self._labels = labels

    def observe(self, value: float) -> None:
        hist = self._histogram
        with hist._lock:
            data = hist._values.setdefault(self._labels, hist._empty())
            data["sum"] += value
            data["count"] += 1
            for bound in hist.buckets:
                if value <= bound:
                    data["buckets"][bound] += 1

    @property
    def count(self) -> int:
        with self._histogram._lock:
            return self._histogram._values.get(self._labels, {"count": 0})["count"]

    @property
    def sum(self) -> float:
        with self._histogram._lock:
            return self._histogram._values.get(self._labels, {"sum": 0.0})["sum"]


class MetricsRegistry:
    """Get-or-create store of metrics, exportable as Prometheus text."""

    def __init__(self) -> None:
        self._metrics: dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def _get_or_create(self, cls: type[_Metric], name: str, *args: Any) -> Any:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = cls(name, *args)
            elif not isinstance(metric, cls):
                raise ValueError(f"metric {name} already registered as {metric.kind}")
            return metric

    def counter(self, name: str, description: str = "", labels: list[str] | None = None) -> Counter:
        return self._get_or_create(Counter, name, description, labels)

    def gauge(self, name: str, description: str = "", labels: list[str] | None = None) -> Gauge:
        return self._get_or_create(Gauge, name, description, labels)

    def histogram(
        self,
        name: str,
        description: str = "",
        labels: list[str] | None = None,
        buckets: tuple[float, ...] | None = None,
    ) -> Histogram:
        return self._get_or_create(Histogram, name, description, labels, buckets)

    def collect(self) -> list[dict[str, Any]]:
        with self._lock:
            metrics = list(self._metrics.values())
        results: list[dict[str, Any]] = []
        for metric in metrics:
            results.extend(metric.collect())
        return results

    def export_prometheus(self) -> str:
        """Render every metric in Prometheus exposition format."""
        with self._lock:
            metrics = list(self._metrics.values())

        lines: list[str] = []
        for metric in metrics:
            if metric.description:
                lines.append(f"# HELP {metric.name} {metric.description}")
            lines.append(f"# TYPE {metric.name} {metric.kind}")
            with metric._lock:
                snapshot = list(metric._values.items())
            for labels, value in snapshot:
                if metric.kind != "histogram":
                    lines.append(f"{metric.name}{labels.render()} {value}")
                    continue
                for bound, count in value["buckets"].items():
                    le = "+Inf" if bound == float("inf") else str(bound)
                    lines.append(f"{metric.name}_bucket{labels.render({'le': le})} {count}")
                lines.append(f"{metric.name}_sum{labels.render()} {value['sum']}")
                lines.append(f"{metric.name}_count{labels.render()} {value['count']}")
        return "\n".join(lines)


class ExtractionMetrics:
    """Pre-defined metrics for partitioned and sequential extraction."""

    def __init__(self, registry: MetricsRegistry | None = None):
        self.registry = registry or MetricsRegistry()
        reg = self.registry

        self.keys = reg.counter(
            "tablepull_keys_total",
            "Partition-key queries by outcome",
            ["table", "status"],
        )
        self.rows = reg.counter(
            "tablepull_rows_total",
            "Rows extracted",
            ["table"],
        )
        self.shards = reg.counter(
            "tablepull_shards_total",
            "Shards by outcome",
            ["table", "status"],
        )
        self.active_workers = reg.gauge(
            "tablepull_active_workers",
            "Workers currently holding a source connection",
            ["table"],
        )
        self.job_duration = reg.histogram(
            "tablepull_job_duration_seconds",
            "Wall-clock time per table job",
            ["table", "mode"],
        )

    def record_key(self, table: str, *, rows: int = 0, failed: bool = False) -> None:
        if failed:
            self.keys.labels(table=table, status="failed").inc()
            return
        self.keys.labels(table=table, status="ok" if rows else "empty").inc()
        if rows:
            self.rows.labels(table=table).inc(rows)

    def record_rows(self, table: str, rows: int) -> None:
        """Rows pulled by a single unfiltered query."""
        if rows:
            self.rows.labels(table=table).inc(rows)

    def record_shard(self, table: str, *, failed: bool = False) -> None:
        self.shards.labels(table=table, status="failed" if failed else "completed").inc()

    def worker_started(self, table: str) -> None:
        self.active_workers.labels(table=table).inc()

    def worker_finished(self, table: str) -> None:
        self.active_workers.labels(table=table).dec()

    def record_job(self, table: str, mode: str, duration: float) -> None:
        self.job_duration.labels(table=table, mode=mode).observe(duration)


_default_registry = MetricsRegistry()

# Module-level instance used when callers do not pass their own
extraction_metrics = ExtractionMetrics(_default_registry)


def get_metrics_registry() -> MetricsRegistry:
    """Registry behind the module-level ``extraction_metrics``."""
    return _default_registry


__all__ = [
    "Labels",
    "Counter",
    "CounterChild",
    "Gauge",
    "GaugeChild",
    "Histogram",
    "HistogramChild",
    "MetricsRegistry",
    "ExtractionMetrics",
    "extraction_metrics",
    "get_metrics_registry",
]
