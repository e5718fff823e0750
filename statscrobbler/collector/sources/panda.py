"""Panda.tv room source."""

from __future__ import annotations

from typing import Optional

import requests

from .base import SourceError, fetch_json, parse_count

ROOM_URL = "http://www.panda.tv/api_room"


class PandaSource:
    def __init__(
        self,
        room_id: int,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if room_id < 0:
            raise ValueError("panda: room id must be >= 0")
        self.room_id = room_id
        self.timeout = timeout
        self.session = session or requests.Session()

    def __repr__(self) -> str:
        return f"PandaSource(room_id={self.room_id})"

    def get_view_count(self) -> int:
        payload = fetch_json(
            self.session, ROOM_URL, params={"roomid": self.room_id}, timeout=self.timeout
        )
        if not isinstance(payload, dict):
            raise SourceError(f"unexpected response type {type(payload).__name__}")
        errno = payload.get("errno", 0)
        if errno:
            raise SourceError(f"panda errno={errno}: {payload.get('errmsg', '')}")
        try:
            person_num = payload["data"]["roominfo"]["person_num"]
        except (KeyError, TypeError) as exc:
            raise SourceError("missing data.roominfo.person_num") from exc
        return parse_count(person_num, "person_num")

    def close(self) -> None:
        self.session.close()
