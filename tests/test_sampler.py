"""Unit tests covering failure isolation and aggregation in the sampler."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import threading
import time

import pytest

from statscrobbler.collector.metrics import PollingMetrics
from statscrobbler.collector.sampler import Sampler, take_sample
from statscrobbler.collector.series import SeriesStore
from statscrobbler.collector.sources import SourceError

FIXED_TIME = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


class StaticSource:
    def __init__(self, count: int) -> None:
        self.count = count
        self.calls = 0

    def get_view_count(self) -> int:
        self.calls += 1
        return self.count


class FailingSource:
    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or SourceError("upstream unavailable")
        self.calls = 0

    def get_view_count(self) -> int:
        self.calls += 1
        raise self.exc


class SlowSource:
    def __init__(self, count: int, delay_s: float) -> None:
        self.count = count
        self.delay_s = delay_s
        self.finished = threading.Event()

    def get_view_count(self) -> int:
        time.sleep(self.delay_s)
        self.finished.set()
        return self.count


def test_failed_source_is_omitted(caplog):
    sources = {"a": StaticSource(42), "b": FailingSource()}

    with caplog.at_level(logging.WARNING, logger="statscrobbler.collector.sampler"):
        sample = take_sample(sources, clock=lambda: FIXED_TIME)

    assert dict(sample.counts) == {"a": 42}
    assert sample.timestamp == FIXED_TIME
    assert any("b: upstream unavailable" in record.message for record in caplog.records)


@pytest.mark.parametrize("value", [None, -5, 3.5, True])
def test_invalid_count_is_omitted_and_logged(caplog, value):
    sources = {"ok": StaticSource(7), "bad": StaticSource(value)}

    with caplog.at_level(logging.WARNING, logger="statscrobbler.collector.sampler"):
        sample = take_sample(sources, clock=lambda: FIXED_TIME)

    assert dict(sample.counts) == {"ok": 7}
    assert any(record.message.startswith("bad: view count") for record in caplog.records)


def test_sample_with_invalid_source_reloads_from_disk(tmp_path):
    path = tmp_path / "history.json"
    sources = {"ok": StaticSource(7), "neg": StaticSource(-5), "none": StaticSource(None)}

    SeriesStore(path).append(take_sample(sources, clock=lambda: FIXED_TIME))

    [sample] = SeriesStore.load(path).snapshot()
    assert dict(sample.counts) == {"ok": 7}


@pytest.mark.parametrize("total, failing", [(1, 0), (1, 1), (4, 2), (5, 5), (6, 1)])
def test_counts_contain_exactly_the_succeeding_sources(total, failing):
    sources = {}
    for index in range(total):
        name = f"s{index}"
        sources[name] = FailingSource() if index < failing else StaticSource(index)

    sample = take_sample(sources, clock=lambda: FIXED_TIME, max_workers=3)

    assert len(sample.counts) == total - failing
    assert set(sample.counts) == {f"s{index}" for index in range(failing, total)}
    for name, value in sample.counts.items():
        assert value == int(name[1:])


def test_unexpected_exception_does_not_abort_cycle(caplog):
    sources = {"boom": FailingSource(ZeroDivisionError("bad adapter")), "ok": StaticSource(0)}

    with caplog.at_level(logging.ERROR, logger="statscrobbler.collector.sampler"):
        sample = take_sample(sources, clock=lambda: FIXED_TIME)

    assert dict(sample.counts) == {"ok": 0}
    assert any(record.exc_info for record in caplog.records)


def test_every_source_is_queried_once():
    sources = {"a": FailingSource(), "b": StaticSource(1), "c": FailingSource()}

    take_sample(sources, clock=lambda: FIXED_TIME)

    assert [source.calls for source in sources.values()] == [1, 1, 1]


def test_timestamp_is_taken_before_fan_out():
    calls = []
    slow = SlowSource(7, delay_s=0.05)

    def clock():
        calls.append(slow.finished.is_set())
        return FIXED_TIME

    sample = take_sample({"slow": slow}, clock=clock)

    assert calls == [False]
    assert sample.timestamp == FIXED_TIME


def test_waits_for_all_outstanding_queries():
    slow = SlowSource(3, delay_s=0.1)

    sample = take_sample({"slow": slow, "fast": StaticSource(1)}, clock=lambda: FIXED_TIME)

    assert slow.finished.is_set()
    assert dict(sample.counts) == {"slow": 3, "fast": 1}


def test_empty_registry_yields_empty_sample():
    sample = take_sample({}, clock=lambda: FIXED_TIME)

    assert dict(sample.counts) == {}
    assert sample.timestamp == FIXED_TIME


def test_sampler_records_metrics():
    metrics = PollingMetrics(log_interval_s=3600)
    sampler = Sampler(
        {"a": StaticSource(1), "b": FailingSource()},
        clock=lambda: FIXED_TIME,
        metrics=metrics,
    )

    sampler.take_sample()
    sampler.take_sample()

    counters = metrics.counters()
    assert counters["cycles_completed"] == 2
    assert counters["sources_queried"] == 4
    assert counters["source_failures"] == 2


def test_sample_counts_are_read_only():
    sample = take_sample({"a": StaticSource(5)}, clock=lambda: FIXED_TIME)

    with pytest.raises(TypeError):
        sample.counts["a"] = 6  # type: ignore[index]
