"""Environment-driven defaults for the corpus location and strict mode."""

from __future__ import annotations

import os
from pathlib import Path

DEVICES_DIR_ENV = "DEVCONF_DEVICES_DIR"
INDEX_PATH_ENV = "DEVCONF_INDEX_PATH"
STRICT_ENV = "DEVCONF_STRICT"
_TRUTHY = {"1", "true", "yes", "on"}


def packaged_devices_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "devices"


def default_devices_dir() -> Path:
    configured = os.environ.get(DEVICES_DIR_ENV)
    return Path(configured).expanduser() if configured else packaged_devices_dir()


def default_index_path() -> Path | None:
    configured = os.environ.get(INDEX_PATH_ENV)
    return Path(configured).expanduser() if configured else None


def _is_truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() in _TRUTHY


def strict_from_env() -> bool:
    """Strict mode is on in CI and whenever DEVCONF_STRICT is truthy."""
    return _is_truthy(os.environ.get(STRICT_ENV)) or _is_truthy(os.environ.get("CI"))
