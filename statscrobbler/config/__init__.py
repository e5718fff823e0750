"""Configuration schemas and loading helpers for the scrobbler."""

from .schema import ScrobblerConfig, ServiceSettings, SourcesConfig
from .store import (
    DEFAULT_CONFIG_PATH,
    apply_env_overrides,
    load_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ScrobblerConfig",
    "ServiceSettings",
    "SourcesConfig",
    "apply_env_overrides",
    "load_config",
]
