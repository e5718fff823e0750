"""Polling pipeline: sources, sampler, series store and scheduler."""

__all__ = [
    "metrics",
    "sampler",
    "scheduler",
    "series",
    "sources",
]
