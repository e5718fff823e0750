"""Series export and chart page endpoints."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from importlib import resources
from typing import Dict, List

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from statscrobbler.collector.series import SeriesStore

router = APIRouter(tags=["data"])


class DataPoint(BaseModel):
    """One sample of the series as served to the chart."""

    timestamp: datetime = Field(description="Cycle start time")
    viewCounts: Dict[str, int] = Field(
        default_factory=dict,
        description="Viewer count per stream that answered during the cycle",
    )


def get_store(request: Request) -> SeriesStore:
    return request.app.state.store


@lru_cache(maxsize=1)
def _index_html() -> str:
    return resources.files("statscrobbler.webapi").joinpath("static/index.html").read_text(
        encoding="utf-8"
    )


@router.get("/data", response_model=List[DataPoint])
def get_data(request: Request) -> List[Dict[str, object]]:
    """Return the full series as of this request."""

    samples = get_store(request).snapshot()
    return [
        {"timestamp": sample.timestamp, "viewCounts": dict(sample.counts)}
        for sample in samples
    ]


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
def index() -> HTMLResponse:
    return HTMLResponse(_index_html())
