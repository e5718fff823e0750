"""Background loop driving one sampling cycle per interval."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from threading import Event, Thread
import time
from typing import Callable, Dict, Optional

from .metrics import PollingMetrics
from .sampler import Sampler
from .series import PersistenceError, Sample, SeriesStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 20.0


def _next_deadline(deadline: float, interval_s: float, now: float) -> float:
    """Return the tick following ``deadline``.

    Ticks missed while a cycle overran collapse into a single one that is
    already due, keeping the cadence aligned to the original start.
    """

    following = deadline + interval_s
    if now < following:
        return following
    missed = int((now - following) // interval_s)
    return following + missed * interval_s


class Scheduler:
    """Own the sampling loop; cycles never overlap."""

    def __init__(
        self,
        sampler: Sampler,
        store: SeriesStore,
        *,
        interval_s: float = DEFAULT_INTERVAL_S,
        metrics: PollingMetrics | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.sampler = sampler
        self.store = store
        self.interval_s = float(interval_s)
        self.metrics = metrics
        self._monotonic = monotonic
        self._stop_event = Event()
        self._thread: Optional[Thread] = None
        self._state = "idle"
        self._cycles = 0
        self.started_at: datetime | None = None
        self.last_cycle_at: datetime | None = None

    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Scheduler already running")
        self._stop_event.clear()
        self._state = "idle"
        self.started_at = datetime.now(timezone.utc)
        self._thread = Thread(target=self._run, name="scrobbler-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 10.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Timed out waiting for the scheduler to finish its cycle")
        self._state = "stopped"

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    # ------------------------------------------------------------------
    def run_cycle(self) -> Optional[Sample]:
        """Take one sample, append it and log the counts.

        Errors are logged and never propagate, so the loop keeps ticking.
        """

        self._state = "sampling"
        try:
            sample = self.sampler.take_sample()
            persisted = True
            try:
                self.store.append(sample)
            except PersistenceError as exc:
                persisted = False
                logger.error("Failed to save historical data: %s", exc)
            if self.metrics is not None:
                self.metrics.record_append(persisted)
            self._cycles += 1
            self.last_cycle_at = sample.timestamp
            logger.info("View counts: %s", dict(sorted(sample.counts.items())))
            return sample
        except Exception:
            logger.exception("Sampling cycle failed")
            return None
        finally:
            self._state = "stopped" if self._stop_event.is_set() else "idle"

    def _run(self) -> None:
        logger.info("Scheduler started (interval=%.1fs, samples=%d)", self.interval_s, len(self.store))
        if len(self.store) == 0:
            logger.info("No historical data; taking a first sample immediately.")
            self.run_cycle()
        deadline = self._monotonic() + self.interval_s
        while True:
            remaining = deadline - self._monotonic()
            if remaining > 0 and self._stop_event.wait(remaining):
                break
            if self._stop_event.is_set():
                break
            self.run_cycle()
            deadline = _next_deadline(deadline, self.interval_s, self._monotonic())
        self._state = "stopped"
        logger.info("Scheduler stopped after %d cycles", self._cycles)

    # ------------------------------------------------------------------
    def info(self) -> Dict[str, object]:
        return {
            "state": self._state,
            "interval_s": self.interval_s,
            "started_at": self.started_at,
            "last_cycle_at": self.last_cycle_at,
            "cycles": self._cycles,
            "samples": len(self.store),
            "dirty": self.store.dirty,
        }
