"""Typed configuration models implemented with dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

PROVIDERS = ("youtube", "panda")


def _as_str(value: Any, field_name: str, *, optional: bool = False) -> Optional[str]:
    if value is None:
        if optional:
            return None
        raise ValueError(f"'{field_name}' is required")
    text = str(value).strip()
    if not text and not optional:
        raise ValueError(f"'{field_name}' cannot be empty")
    return text or None


def _as_int(value: Any, field_name: str) -> int:
    if value is None:
        raise ValueError(f"'{field_name}' is required")
    if isinstance(value, bool):
        raise ValueError(f"'{field_name}' must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"'{field_name}' must be an integer")
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' must be an integer") from exc
    return result


def _as_float(value: Any, field_name: str) -> float:
    if value is None:
        raise ValueError(f"'{field_name}' is required")
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' must be numeric") from exc
    return result


def _as_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"'{field_name}' must be a mapping, found {type(value).__name__}")
    return value


@dataclass
class SourcesConfig:
    """Stream name to provider identifier, partitioned by provider."""

    youtube: Dict[str, str] = field(default_factory=dict)
    panda: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "SourcesConfig":
        if not data:
            return cls()
        youtube: Dict[str, str] = {}
        panda: Dict[str, int] = {}
        for provider, streams in data.items():
            key = str(provider).strip().lower()
            if key == "youtube":
                for name, video_id in _as_mapping(streams, "youtube").items():
                    stream = _as_str(name, "youtube[] name")
                    youtube[stream] = _as_str(video_id, f"youtube.{stream}")
            elif key == "panda":
                for name, room_id in _as_mapping(streams, "panda").items():
                    stream = _as_str(name, "panda[] name")
                    room = _as_int(room_id, f"panda.{stream}")
                    if room < 0:
                        raise ValueError(f"panda.{stream} must be >= 0")
                    panda[stream] = room
            else:
                raise ValueError(
                    f"unknown provider '{provider}' (expected one of: {', '.join(PROVIDERS)})"
                )
        duplicated = sorted(set(youtube) & set(panda))
        if duplicated:
            raise ValueError(f"stream names configured under several providers: {', '.join(duplicated)}")
        return cls(youtube=youtube, panda=panda)


@dataclass
class ServiceSettings:
    interval_s: float = 20.0
    history_path: str = "scrobbler.historical.json"
    request_timeout_s: float = 10.0
    max_workers: int = 8
    metrics_log_interval_s: float = 300.0
    host: str = "0.0.0.0"
    port: int = 8989

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ServiceSettings":
        if not data:
            return cls()
        defaults = cls()
        interval = _as_float(data.get("interval_s", defaults.interval_s), "service.interval_s")
        if interval <= 0:
            raise ValueError("service.interval_s must be > 0")
        history_path = _as_str(
            data.get("history_path", defaults.history_path), "service.history_path"
        )
        timeout = _as_float(
            data.get("request_timeout_s", defaults.request_timeout_s), "service.request_timeout_s"
        )
        if timeout <= 0:
            raise ValueError("service.request_timeout_s must be > 0")
        max_workers = _as_int(data.get("max_workers", defaults.max_workers), "service.max_workers")
        if max_workers < 1:
            raise ValueError("service.max_workers must be >= 1")
        metrics_interval = _as_float(
            data.get("metrics_log_interval_s", defaults.metrics_log_interval_s),
            "service.metrics_log_interval_s",
        )
        if metrics_interval < 0:
            raise ValueError("service.metrics_log_interval_s must be >= 0")
        host = _as_str(data.get("host", defaults.host), "service.host")
        port = _as_int(data.get("port", defaults.port), "service.port")
        if not 0 < port < 65536:
            raise ValueError("service.port must be between 1 and 65535")
        return cls(
            interval_s=interval,
            history_path=history_path,
            request_timeout_s=timeout,
            max_workers=max_workers,
            metrics_log_interval_s=metrics_interval,
            host=host,
            port=port,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval_s": self.interval_s,
            "history_path": self.history_path,
            "request_timeout_s": self.request_timeout_s,
            "max_workers": self.max_workers,
            "metrics_log_interval_s": self.metrics_log_interval_s,
            "host": self.host,
            "port": self.port,
        }


@dataclass
class ScrobblerConfig:
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    service: ServiceSettings = field(default_factory=ServiceSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ScrobblerConfig":
        providers: Dict[str, Any] = {}
        service_payload: Mapping[str, Any] | None = None
        for key, value in data.items():
            if str(key).strip().lower() == "service":
                service_payload = _as_mapping(value, "service")
            else:
                providers[key] = value
        return cls(
            sources=SourcesConfig.from_mapping(providers),
            service=ServiceSettings.from_mapping(service_payload),
        )
