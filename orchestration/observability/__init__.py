"""Observability - in-memory metrics collection."""

from .metrics import Metric, MetricsCollector, MetricSummary, MetricType

__all__ = ["Metric", "MetricSummary", "MetricType", "MetricsCollector"]
