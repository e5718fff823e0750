import json
import logging
import threading
import time
from typing import Dict


class PollingMetrics:
    """Thread-safe accumulator for polling cycle and persistence counters."""

    def __init__(self, log_interval_s: float = 300.0, logger: logging.Logger | None = None) -> None:
        self.log_interval_s = max(0.0, float(log_interval_s))
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._start_time = time.time()
        self._last_log_time = self._start_time
        self._counters = self._initial_counters()
        self._last_snapshot = self._counters.copy()

    @staticmethod
    def _initial_counters() -> Dict[str, int]:
        return {
            "cycles_completed": 0,
            "sources_queried": 0,
            "source_failures": 0,
            "samples_appended": 0,
            "persist_failures": 0,
        }

    def record_cycle(self, queried: int, failed: int) -> None:
        with self._lock:
            self._counters["cycles_completed"] += 1
            self._counters["sources_queried"] += max(0, queried)
            self._counters["source_failures"] += max(0, failed)
        self.maybe_log()

    def record_append(self, persisted: bool) -> None:
        with self._lock:
            self._counters["samples_appended"] += 1
            if not persisted:
                self._counters["persist_failures"] += 1
        self.maybe_log()

    def counters(self) -> Dict[str, int]:
        with self._lock:
            return self._counters.copy()

    def maybe_log(self, force: bool = False) -> None:
        now = time.time()
        with self._lock:
            interval = now - self._last_log_time
            if not force and self.log_interval_s > 0.0 and interval < self.log_interval_s:
                return

            payload = self._build_payload(now, interval)
            self._last_log_time = now
            self._last_snapshot = self._counters.copy()

        self._logger.info("polling_metrics %s", json.dumps(payload, sort_keys=True))

    def _build_payload(self, now: float, interval: float) -> Dict[str, object]:
        delta = {
            key: self._counters[key] - self._last_snapshot.get(key, 0)
            for key in self._counters
        }
        return {
            "type": "polling_metrics",
            "uptime_s": round(now - self._start_time, 3),
            "interval_s": round(interval, 3),
            "counters": self._counters.copy(),
            "delta": delta,
        }
