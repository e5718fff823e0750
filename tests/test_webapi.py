from __future__ import annotations

from datetime import datetime, timedelta, timezone
import threading

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from statscrobbler.collector.metrics import PollingMetrics
from statscrobbler.collector.scheduler import Scheduler
from statscrobbler.collector.series import Sample, SeriesStore
from statscrobbler.webapi import create_app

T0 = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def _parse(ts: str) -> datetime:
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


class BlockingStore(SeriesStore):
    """Store whose disk write waits until the test releases it."""

    def __init__(self, path) -> None:
        super().__init__(path)
        self.writing = threading.Event()
        self.release = threading.Event()

    def _persist(self, samples):
        self.writing.set()
        assert self.release.wait(5.0)
        super()._persist(samples)


class FixedSampler:
    def __init__(self) -> None:
        self.calls = 0

    def take_sample(self) -> Sample:
        self.calls += 1
        return Sample(timestamp=T0 + timedelta(seconds=20 * self.calls), counts={"a": self.calls})


@pytest.fixture
def store(tmp_path):
    store = SeriesStore(tmp_path / "history.json")
    store.append(Sample(timestamp=T0, counts={"a": 42, "b": 7}))
    store.append(Sample(timestamp=T0 + timedelta(seconds=20), counts={"a": 43}))
    return store


@pytest.fixture
def api_client(store):
    return TestClient(create_app(store))


def test_get_data_returns_full_series(api_client):
    response = api_client.get("/data")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    payload = response.json()
    assert [entry["viewCounts"] for entry in payload] == [{"a": 42, "b": 7}, {"a": 43}]
    assert [_parse(entry["timestamp"]) for entry in payload] == [T0, T0 + timedelta(seconds=20)]


def test_get_data_empty_series(tmp_path):
    client = TestClient(create_app(SeriesStore(tmp_path / "history.json")))

    response = client.get("/data")

    assert response.status_code == 200
    assert response.json() == []


def test_index_serves_chart_page(api_client):
    response = api_client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "fetch('data')" in response.text


def test_status_without_scheduler(api_client):
    response = api_client.get("/status")

    assert response.status_code == 200
    assert response.json() == {"samples": 2, "dirty": False, "scheduler": None, "counters": None}


def test_data_during_append_is_never_torn(tmp_path):
    store = BlockingStore(tmp_path / "history.json")
    client = TestClient(create_app(store))

    appender = threading.Thread(
        target=store.append, args=(Sample(timestamp=T0, counts={"a": 1}),)
    )
    appender.start()
    try:
        assert store.writing.wait(5.0)
        response = client.get("/data")
    finally:
        store.release.set()
        appender.join()

    assert response.status_code == 200
    assert [entry["viewCounts"] for entry in response.json()] in ([], [{"a": 1}])
    assert [entry["viewCounts"] for entry in client.get("/data").json()] == [{"a": 1}]


def test_concurrent_requests_see_prefixes_of_the_series(tmp_path):
    store = SeriesStore(tmp_path / "history.json")
    client = TestClient(create_app(store))
    expected = [{"n": index} for index in range(25)]
    seen = []
    done = threading.Event()

    def writer():
        for index in range(25):
            store.append(Sample(timestamp=T0 + timedelta(seconds=index), counts={"n": index}))
        done.set()

    thread = threading.Thread(target=writer)
    thread.start()
    while not done.is_set():
        seen.append([entry["viewCounts"] for entry in client.get("/data").json()])
    thread.join()

    for counts in seen:
        assert counts == expected[: len(counts)]


def test_lifespan_runs_scheduler_and_reports_status(tmp_path):
    store = SeriesStore(tmp_path / "history.json")
    metrics = PollingMetrics(log_interval_s=3600)
    sampler = FixedSampler()
    scheduler = Scheduler(sampler, store, interval_s=60.0, metrics=metrics)
    app = create_app(store, scheduler=scheduler, metrics=metrics)

    with TestClient(app) as client:
        for _ in range(300):
            if scheduler.info()["cycles"] == 1:
                break
            threading.Event().wait(0.01)
        data = client.get("/data").json()
        status = client.get("/status").json()

    assert [entry["viewCounts"] for entry in data] == [{"a": 1}]
    assert status["samples"] == 1
    assert status["scheduler"]["cycles"] == 1
    assert status["scheduler"]["state"] == "idle"
    assert status["counters"]["samples_appended"] == 1
    assert scheduler.is_running is False
