"""YouTube Data API source reporting concurrent viewers of a live broadcast."""

from __future__ import annotations

from typing import Optional

import requests

from .base import SourceError, fetch_json, parse_count

VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"


class YouTubeSource:
    """Poll ``liveStreamingDetails.concurrentViewers`` for a single video."""

    def __init__(
        self,
        api_key: str,
        video_id: str,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("youtube: API key not specified")
        if not video_id:
            raise ValueError("youtube: video id not specified")
        self.video_id = video_id
        self.timeout = timeout
        self._api_key = api_key
        self.session = session or requests.Session()

    def __repr__(self) -> str:
        return f"YouTubeSource(video_id={self.video_id!r})"

    def get_view_count(self) -> int:
        params = {"part": "liveStreamingDetails", "id": self.video_id, "key": self._api_key}
        payload = fetch_json(self.session, VIDEOS_URL, params=params, timeout=self.timeout)
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list) or len(items) != 1:
            count = len(items) if isinstance(items, list) else 0
            raise SourceError(f"youtube returned {count} videos")
        details = items[0].get("liveStreamingDetails") if isinstance(items[0], dict) else None
        if not isinstance(details, dict) or "concurrentViewers" not in details:
            raise SourceError(f"youtube video {self.video_id} is not live")
        return parse_count(details["concurrentViewers"], "concurrentViewers")

    def close(self) -> None:
        self.session.close()
