"""Scheduler and polling metrics status endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel


router = APIRouter(tags=["status"])


class SchedulerStatus(BaseModel):
    state: str
    interval_s: float
    started_at: datetime | None = None
    last_cycle_at: datetime | None = None
    cycles: int
    samples: int
    dirty: bool


class StatusResponse(BaseModel):
    """Snapshot of the polling loop health."""

    samples: int
    dirty: bool
    scheduler: SchedulerStatus | None = None
    counters: Dict[str, int] | None = None


@router.get("/status", response_model=StatusResponse)
def get_status(request: Request) -> Dict[str, object]:
    store = request.app.state.store
    scheduler = request.app.state.scheduler
    metrics = request.app.state.metrics
    return {
        "samples": len(store),
        "dirty": store.dirty,
        "scheduler": scheduler.info() if scheduler is not None else None,
        "counters": metrics.counters() if metrics is not None else None,
    }
