"""Registry of viewer-count sources and construction helpers."""

from __future__ import annotations

import logging
from typing import Dict, Mapping

from statscrobbler.config.schema import ServiceSettings, SourcesConfig

from .base import SourceError, ViewCountSource, fetch_json, parse_count
from .panda import PandaSource
from .youtube import YouTubeSource

logger = logging.getLogger(__name__)

__all__ = [
    "PandaSource",
    "SourceError",
    "ViewCountSource",
    "YouTubeSource",
    "build_sources",
    "close_sources",
    "fetch_json",
    "parse_count",
]


def build_sources(
    config: SourcesConfig,
    *,
    youtube_api_key: str | None = None,
    settings: ServiceSettings | None = None,
) -> Dict[str, ViewCountSource]:
    """Instantiate one source per configured stream name."""

    timeout = (settings or ServiceSettings()).request_timeout_s
    sources: Dict[str, ViewCountSource] = {}

    for name, video_id in config.youtube.items():
        try:
            sources[name] = YouTubeSource(youtube_api_key or "", video_id, timeout=timeout)
        except (RuntimeError, ValueError) as exc:
            raise RuntimeError(f"{name}: YouTubeSource({video_id!r}): {exc}") from exc

    for name, room_id in config.panda.items():
        try:
            sources[name] = PandaSource(room_id, timeout=timeout)
        except ValueError as exc:
            raise RuntimeError(f"{name}: PandaSource({room_id}): {exc}") from exc

    if not sources:
        logger.warning("No streams configured; samples will be empty.")
    else:
        logger.info("Configured %d sources: %s", len(sources), ", ".join(sorted(sources)))
    return sources


def close_sources(sources: Mapping[str, ViewCountSource]) -> None:
    for name, source in sources.items():
        close = getattr(source, "close", None)
        if not callable(close):
            continue
        try:
            close()
        except Exception:  # pragma: no cover - best effort
            logger.exception("Error closing source %s", name)
