"""FastAPI application exposing the viewer-count series."""

from __future__ import annotations

from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI

from statscrobbler import __version__
from statscrobbler.collector.metrics import PollingMetrics
from statscrobbler.collector.scheduler import Scheduler
from statscrobbler.collector.series import SeriesStore

from .data import router as data_router
from .status import router as status_router


def create_app(
    store: SeriesStore,
    *,
    scheduler: Scheduler | None = None,
    metrics: PollingMetrics | None = None,
) -> FastAPI:
    """Build the app around ``store``; an attached scheduler follows the app lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler is not None:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                await anyio.to_thread.run_sync(scheduler.stop)

    app = FastAPI(title="Stats Scrobbler", version=__version__, lifespan=lifespan)
    app.state.store = store
    app.state.scheduler = scheduler
    app.state.metrics = metrics

    app.include_router(data_router)
    app.include_router(status_router)
    return app


__all__ = ["create_app"]
