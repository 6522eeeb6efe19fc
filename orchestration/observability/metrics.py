"""
In-memory metrics collector.

Counters and gauges keep their latest value per series; histograms and
timers keep every observation per series. Every recording is also appended
to a bounded record log that backs filtering and summaries.
"""
import math
import time
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from relay_sdk.utils.datetime import utc_now

T = TypeVar("T")

Tags = Mapping[str, str]

MAX_METRICS = 100_000


class MetricType(str, Enum):
    """Metric kinds."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    TIMER = "timer"


@dataclass
class Metric:
    """A single recorded observation."""

    name: str
    value: float
    type: MetricType
    timestamp: datetime = field(default_factory=utc_now)
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class MetricSummary:
    """Aggregate statistics over a set of observations."""

    name: str
    count: int
    sum: float
    min: float
    max: float
    avg: float
    p50: float
    p95: float
    p99: float

    @classmethod
    def from_values(cls, name: str, values: list[float]) -> "MetricSummary":
        ordered = sorted(values)
        total = sum(ordered)
        return cls(
            name=name,
            count=len(ordered),
            sum=total,
            min=ordered[0],
            max=ordered[-1],
            avg=total / len(ordered),
            p50=percentile(ordered, 0.5),
            p95=percentile(ordered, 0.95),
            p99=percentile(ordered, 0.99),
        )


def percentile(sorted_values: list[float], p: float) -> float:
    """Nearest-rank percentile of already sorted values."""
    if not sorted_values:
        return 0
    index = math.ceil(len(sorted_values) * p) - 1
    return sorted_values[max(0, index)]


def metric_key(name: str, tags: Tags | None = None) -> str:
    """Series key: ``name`` or ``name{k1=v1,k2=v2}`` with tags sorted by key."""
    if not tags:
        return name
    rendered = ",".join(f"{key}={tags[key]}" for key in sorted(tags))
    return f"{name}{{{rendered}}}"


class MetricsCollector:
    """Collects counters, gauges, histograms and timers."""

    def __init__(self, max_metrics: int = MAX_METRICS, clock: Callable[[], float] = time.monotonic) -> None:
        self._records: deque[Metric] = deque(maxlen=max_metrics)
        self._counters: dict[str, float] = {}
        self._gauges: dict[str, float] = {}
        self._histograms: dict[str, list[float]] = {}
        self._timers: dict[str, list[float]] = {}
        self._clock = clock

    # Counters

    def increment_counter(self, name: str, value: float = 1, tags: Tags | None = None) -> None:
        key = metric_key(name, tags)
        total = self._counters.get(key, 0) + value
        self._counters[key] = total
        self._record(name, total, MetricType.COUNTER, tags)

    def get_counter(self, name: str, tags: Tags | None = None) -> float:
        return self._counters.get(metric_key(name, tags), 0)

    # Gauges

    def set_gauge(self, name: str, value: float, tags: Tags | None = None) -> None:
        self._gauges[metric_key(name, tags)] = value
        self._record(name, value, MetricType.GAUGE, tags)

    def get_gauge(self, name: str, tags: Tags | None = None) -> float | None:
        return self._gauges.get(metric_key(name, tags))

    # Histograms and timers

    def record_histogram(self, name: str, value: float, tags: Tags | None = None) -> None:
        self._histograms.setdefault(metric_key(name, tags), []).append(value)
        self._record(name, value, MetricType.HISTOGRAM, tags)

    def record_timer(self, name: str, duration_ms: float, tags: Tags | None = None) -> None:
        self._timers.setdefault(metric_key(name, tags), []).append(duration_ms)
        self._record(name, duration_ms, MetricType.TIMER, tags)

    def start_timer(self, name: str, tags: Tags | None = None) -> Callable[[], float]:
        """Start a timer; calling the returned function records and returns the elapsed ms."""
        started = self._clock()

        def stop() -> float:
            duration_ms = (self._clock() - started) * 1000
            self.record_timer(name, duration_ms, tags)
            return duration_ms

        return stop

    async def time_async(self, name: str, fn: Callable[[], Awaitable[T]], tags: Tags | None = None) -> T:
        """Await ``fn()`` and record its duration whether it succeeds or raises."""
        stop = self.start_timer(name, tags)
        try:
            return await fn()
        finally:
            stop()

    # Queries

    def get_metrics(
        self,
        name: str | None = None,
        type: MetricType | str | None = None,
        since: datetime | None = None,
        tags: Tags | None = None,
    ) -> list[Metric]:
        """Filter the record log. Tag filters match records carrying every given tag."""
        metric_type = MetricType(type) if type is not None else None
        matches = []
        for metric in self._records:
            if name is not None and metric.name != name:
                continue
            if metric_type is not None and metric.type != metric_type:
                continue
            if since is not None and metric.timestamp < since:
                continue
            if tags and any(metric.tags.get(key) != value for key, value in tags.items()):
                continue
            matches.append(metric)
        return matches

    def get_summary(self, name: str, tags: Tags | None = None) -> MetricSummary | None:
        """Summarize the record log entries for ``name``; None when there are none."""
        values = [metric.value for metric in self.get_metrics(name=name, tags=tags)]
        if not values:
            return None
        return MetricSummary.from_values(name, values)

    def export(self) -> dict[str, Any]:
        return {
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "histograms": {key: _summary_dict(key, values) for key, values in self._histograms.items()},
            "timers": {key: _summary_dict(key, values) for key, values in self._timers.items()},
        }

    def clear(self) -> None:
        self._records.clear()
        self._counters.clear()
        self._gauges.clear()
        self._histograms.clear()
        self._timers.clear()

    def _record(self, name: str, value: float, metric_type: MetricType, tags: Tags | None) -> None:
        self._records.append(Metric(name=name, value=value, type=metric_type, tags=dict(tags or {})))


def _summary_dict(key: str, values: list[float]) -> dict[str, Any]:
    return asdict(MetricSummary.from_values(key, values))
