"""Common contract for viewer-count sources."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

import requests


class SourceError(Exception):
    """Raised when a source cannot produce a viewer count for this cycle."""


@runtime_checkable
class ViewCountSource(Protocol):
    """Minimal contract every upstream provider implements."""

    def get_view_count(self) -> int:
        """Query the provider once and return the current viewer count."""


def parse_count(raw: Any, field_name: str) -> int:
    """Convert a provider supplied count into a non-negative integer."""

    if isinstance(raw, bool):
        raise SourceError(f"{field_name}: unexpected boolean {raw!r}")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if not (text.isascii() and text.isdigit()):
            raise SourceError(f"{field_name}: cannot parse {raw!r} as a count")
        value = int(text)
    else:
        raise SourceError(f"{field_name}: cannot parse {raw!r} as a count")
    if value < 0:
        raise SourceError(f"{field_name}: negative count {value}")
    return value


def fetch_json(
    session: requests.Session,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    timeout: float = 10.0,
) -> Any:
    """Issue a single GET and decode the JSON body, mapping failures to ``SourceError``."""

    try:
        response = session.get(url, params=params, timeout=timeout)
    except requests.RequestException as exc:
        raise SourceError(f"{type(exc).__name__}: {exc}") from exc
    if response.status_code >= 300:
        raise SourceError(f"HTTP {response.status_code} from {url}")
    try:
        return response.json()
    except ValueError as exc:
        raise SourceError(f"invalid JSON body: {exc}") from exc
