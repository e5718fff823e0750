"""Fan out to every registered source and aggregate one sample per cycle."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
import logging
from typing import Callable, Dict, Mapping, Optional

from .metrics import PollingMetrics
from .series import Sample
from .sources import SourceError, ViewCountSource, parse_count

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _query(name: str, source: ViewCountSource) -> Optional[int]:
    try:
        return parse_count(source.get_view_count(), "view count")
    except SourceError as exc:
        logger.warning("%s: %s", name, exc)
    except Exception:
        logger.exception("%s: unexpected error querying %r", name, source)
    return None


def take_sample(
    sources: Mapping[str, ViewCountSource],
    *,
    clock: Clock = _utcnow,
    max_workers: int = 8,
    metrics: PollingMetrics | None = None,
) -> Sample:
    """Query every source once and return the aggregated sample.

    The timestamp is taken before any source is queried. Sources that fail
    are logged and left out of ``counts``; the call returns only once every
    query has finished.
    """

    timestamp = clock()
    counts: Dict[str, int] = {}
    if sources:
        workers = max(1, min(max_workers, len(sources)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scrobbler-source") as pool:
            futures = {name: pool.submit(_query, name, source) for name, source in sources.items()}
            for name, future in futures.items():
                value = future.result()
                if value is not None:
                    counts[name] = value
    failed = len(sources) - len(counts)
    if metrics is not None:
        metrics.record_cycle(queried=len(sources), failed=failed)
    return Sample(timestamp=timestamp, counts=counts)


class Sampler:
    """Bind a source registry to the options used for every cycle."""

    def __init__(
        self,
        sources: Mapping[str, ViewCountSource],
        *,
        clock: Clock = _utcnow,
        max_workers: int = 8,
        metrics: PollingMetrics | None = None,
    ) -> None:
        self.sources = dict(sources)
        self.clock = clock
        self.max_workers = max_workers
        self.metrics = metrics

    def take_sample(self) -> Sample:
        return take_sample(
            self.sources,
            clock=self.clock,
            max_workers=self.max_workers,
            metrics=self.metrics,
        )
