"""Helpers to load and validate the scrobbler configuration file."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .schema import ScrobblerConfig, ServiceSettings

DEFAULT_CONFIG_PATH = Path("scrobbler.config.yaml")


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Unable to parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at {path}, found {type(data).__name__}")
    return data


def load_config(path: Optional[Path] = None) -> ScrobblerConfig:
    """Read and validate the scrobbler configuration.

    JSON is a subset of YAML, so the legacy ``scrobbler.config.json`` layout
    (``{"YouTube": {...}, "Panda": {...}}``) loads through the same path.
    """

    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    raw = _read_yaml(cfg_path)
    return ScrobblerConfig.from_mapping(raw)


def apply_env_overrides(config: ScrobblerConfig, env: Mapping[str, Any]) -> ScrobblerConfig:
    """Return a copy of ``config`` with ``SCROBBLER_*`` environment overrides applied."""

    payload = config.service.to_dict()
    for name, key in (
        ("SCROBBLER_HOST", "host"),
        ("SCROBBLER_PORT", "port"),
        ("SCROBBLER_INTERVAL_S", "interval_s"),
        ("SCROBBLER_HISTORY_PATH", "history_path"),
    ):
        value = env.get(name)
        if value not in (None, ""):
            payload[key] = value
    service = ServiceSettings.from_mapping(payload)
    return replace(config, service=service)
