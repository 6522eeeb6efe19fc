"""Tests for MetricsCollector."""

import math
from datetime import timedelta

import pytest

from orchestration.observability.metrics import MetricsCollector, MetricType, metric_key, percentile
from relay_sdk.utils.datetime import utc_now


def test_timer_summary():
    collector = MetricsCollector()
    for value in (10, 20, 30, 40):
        collector.record_timer("x", value)

    summary = collector.get_summary("x")

    assert summary.count == 4
    assert summary.min == 10
    assert summary.max == 40
    assert summary.avg == 25
    assert summary.sum == 100
    # nearest rank: ceil(n * p) - 1
    assert summary.p50 == 20
    assert summary.p95 == 40
    assert summary.p99 == 40


def test_percentile_rank_is_clamped():
    assert percentile([], 0.5) == 0
    assert percentile([7], 0.01) == 7
    assert percentile([1, 2, 3], 0.0) == 1
    values = list(range(1, 101))
    assert percentile(values, 0.95) == values[math.ceil(100 * 0.95) - 1]


def test_counters_accumulate_per_tag_set():
    collector = MetricsCollector()
    collector.increment_counter("requests", tags={"route": "a"})
    collector.increment_counter("requests", 2, tags={"route": "a"})
    collector.increment_counter("requests", tags={"route": "b"})

    assert collector.get_counter("requests", {"route": "a"}) == 3
    assert collector.get_counter("requests", {"route": "b"}) == 1
    assert collector.get_counter("requests") == 0


def test_series_key_sorts_tags():
    assert metric_key("latency") == "latency"
    assert metric_key("latency", {"zone": "eu", "agent": "x"}) == "latency{agent=x,zone=eu}"


def test_gauges_keep_latest_value():
    collector = MetricsCollector()
    collector.set_gauge("queue_depth", 5)
    collector.set_gauge("queue_depth", 2)

    assert collector.get_gauge("queue_depth") == 2
    assert collector.get_gauge("unknown") is None


def test_get_metrics_filters():
    collector = MetricsCollector()
    collector.record_histogram("tokens", 100, {"agent": "a"})
    collector.record_histogram("tokens", 50, {"agent": "b"})
    collector.increment_counter("calls", tags={"agent": "a"})

    assert len(collector.get_metrics(name="tokens")) == 2
    assert [m.value for m in collector.get_metrics(tags={"agent": "a"})] == [100, 1]
    assert [m.name for m in collector.get_metrics(type=MetricType.COUNTER)] == ["calls"]
    assert collector.get_metrics(type="gauge") == []
    assert collector.get_metrics(since=utc_now() + timedelta(minutes=1)) == []
    assert collector.get_summary("tokens", {"agent": "b"}).avg == 50
    assert collector.get_summary("nothing") is None


def test_record_log_is_bounded():
    collector = MetricsCollector(max_metrics=3)
    for value in range(5):
        collector.record_histogram("h", value)

    assert [m.value for m in collector.get_metrics()] == [2, 3, 4]
    # per-series values are kept in full
    assert collector.export()["histograms"]["h"]["count"] == 5


def test_start_timer_uses_clock():
    ticks = iter([10.0, 10.25])
    collector = MetricsCollector(clock=lambda: next(ticks))

    stop = collector.start_timer("op", {"kind": "test"})
    assert stop() == 250.0
    assert collector.export()["timers"]["op{kind=test}"]["max"] == 250.0


@pytest.mark.asyncio
async def test_time_async_records_on_failure():
    collector = MetricsCollector()

    async def boom():
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        await collector.time_async("risky", boom)

    assert collector.get_summary("risky").count == 1


def test_export_shape_and_clear():
    collector = MetricsCollector()
    collector.increment_counter("c")
    collector.set_gauge("g", 1.5)
    collector.record_histogram("h", 3)
    collector.record_timer("t", 4)

    exported = collector.export()

    assert exported["counters"] == {"c": 1}
    assert exported["gauges"] == {"g": 1.5}
    assert set(exported["histograms"]["h"]) == {"name", "count", "sum", "min", "max", "avg", "p50", "p95", "p99"}
    assert exported["timers"]["t"]["avg"] == 4

    collector.clear()
    assert collector.export() == {"counters": {}, "gauges": {}, "histograms": {}, "timers": {}}
