"""Structured event stream for extraction runs.

Logging lives in ``tablepull.core.logging``; this package holds the
in-process metrics registry.
"""

from .metrics import (
    Counter,
    ExtractionMetrics,
    Gauge,
    Histogram,
    MetricsRegistry,
    extraction_metrics,
    get_metrics_registry,
)

__all__ = [
    "Counter",
    "Gauge",
    "Histogram",
    "MetricsRegistry",
    "ExtractionMetrics",
    "extraction_metrics",
    "get_metrics_registry",
]
