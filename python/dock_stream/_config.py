# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Configuration loading with defaults -> install file -> environment precedence."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

import yaml

_CONFIG_FILENAME = "dock-stream.yaml"

# Engine environment variables understood by the docker CLI.
_ENV_KEYS = {
    "DOCKER_HOST": "host",
    "DOCKER_CERT_PATH": "cert_path",
    "DOCKER_API_VERSION": "api_version",
}


@dataclasses.dataclass(frozen=True)
class DockStreamConfig:
    """Resolved dock-stream configuration."""

    host: str | None = None
    cert_path: str | None = None
    tls_verify: bool = False
    api_version: str | None = None
    log_level: str = "info"
    chunk_size: int = 65536


def load_config(config_path: Path | None = None) -> DockStreamConfig:
    """Load configuration with precedence: environment > file > defaults.

    1. Start with defaults
    2. Overlay ``~/.dock-stream/dock-stream.yaml`` (or *config_path*) if it exists
    3. Overlay ``DOCKER_HOST``, ``DOCKER_CERT_PATH``, ``DOCKER_TLS_VERIFY``
       and ``DOCKER_API_VERSION``
    """
    overrides: dict[str, Any] = {}

    path = config_path or Path.home() / ".dock-stream" / _CONFIG_FILENAME
    if path.is_file():
        _merge_yaml(overrides, path)

    _merge_env(overrides)
    return _build_config(overrides)


def _merge_yaml(target: dict[str, Any], path: Path) -> None:
    """Parse a YAML file and merge its values into *target*."""
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError:
        return
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if key in ("logging", "tls") and isinstance(value, dict):
            # Flatten sub-sections into top-level config keys
            target.update(value)
        else:
            target[key] = value


def _merge_env(target: dict[str, Any]) -> None:
    """Overlay the docker CLI environment variables onto *target*."""
    for env_key, field in _ENV_KEYS.items():
        value = os.environ.get(env_key)
        if value:
            target[field] = value
    # Like the docker CLI, any non-empty value turns verification on.
    if os.environ.get("DOCKER_TLS_VERIFY"):
        target["tls_verify"] = True


def _build_config(overrides: dict[str, Any]) -> DockStreamConfig:
    """Build a ``DockStreamConfig`` from a dict of overrides."""
    field_names = {f.name for f in dataclasses.fields(DockStreamConfig)}
    filtered = {k: v for k, v in overrides.items() if k in field_names}
    return DockStreamConfig(**filtered)
