"""Store settings read from ``INVENTORY_*`` environment variables."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

__all__ = ["APP_NAME", "StoreSettings", "load_settings", "reload", "default_data_dir"]

APP_NAME = "InventoryStore"

_JOURNAL_MODES = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}
_SYNCHRONOUS = {"OFF", "NORMAL", "FULL", "EXTRA"}


@dataclass(frozen=True)
class StoreSettings:
    data_dir: Path
    journal_mode: str = "WAL"
    synchronous: str = "NORMAL"
    busy_timeout_ms: int = 10000
    close_timeout: float = 5.0

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


def default_data_dir(app_name: str = APP_NAME) -> Path:
    """
    Platform-specific data directory.

    - Windows: %LOCALAPPDATA%\\AppName
    - macOS: ~/Library/Application Support/AppName
    - Linux: $XDG_DATA_HOME/AppName (default ~/.local/share)
    """
    home = Path.home()

    if sys.platform == "win32":
        return Path(os.environ.get("LOCALAPPDATA", home / "AppData" / "Local")) / app_name
    elif sys.platform == "darwin":
        return home / "Library" / "Application Support" / app_name
    else:
        xdg_data_home = os.environ.get("XDG_DATA_HOME") or home / ".local" / "share"
        return Path(xdg_data_home) / app_name


def _choice(env: Mapping[str, str], key: str, allowed: set[str], default: str) -> str:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    value = raw.upper()
    if value not in allowed:
        raise ValueError(f"{key} must be one of {sorted(allowed)}, got {raw!r}")
    return value


def _positive_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{key} must be >= 0, got {value}")
    return value


def _parse(env: Mapping[str, str]) -> StoreSettings:
    data_dir = env.get("INVENTORY_DATA_DIR", "").strip()
    return StoreSettings(
        data_dir=Path(data_dir).expanduser() if data_dir else default_data_dir(),
        journal_mode=_choice(env, "INVENTORY_JOURNAL_MODE", _JOURNAL_MODES, "WAL"),
        synchronous=_choice(env, "INVENTORY_SYNCHRONOUS", _SYNCHRONOUS, "NORMAL"),
        busy_timeout_ms=_positive_int(env, "INVENTORY_BUSY_TIMEOUT_MS", 10000),
    )


@lru_cache(maxsize=1)
def _cached_settings() -> StoreSettings:
    return _parse(os.environ)


def reload() -> None:
    """Clear the cached settings (useful for tests)."""

    _cached_settings.cache_clear()


def load_settings(env: Mapping[str, str] | None = None) -> StoreSettings:
    """Return settings for ``env``, or the cached process-environment settings."""

    if env is not None:
        return _parse(env)
    return _cached_settings()
