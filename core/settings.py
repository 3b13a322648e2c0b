"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "Doggy Daycare"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"
EXPORT_DIR = DATA_DIR / "exports"

for _dir in (DATA_DIR, LOG_DIR, EXPORT_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "daycare.db"
CONFIG_PATH = DATA_DIR / "config.json"
LOG_PATH = LOG_DIR / "daycare.log"


@dataclass(frozen=True)
class SyncSettings:
    max_retries: int = 3
    drain_max_passes: int = 10
    error_max_length: int = 1000


SYNC = SyncSettings()


@dataclass(frozen=True)
class ConnectivitySettings:
    poll_interval_sec: float = 30.0
    probe_timeout_sec: float = 5.0
    probe_urls: tuple[str, ...] = (
        "https://www.google.com/generate_204",
        "https://httpbin.org/status/200",
    )


CONNECTIVITY = ConnectivitySettings()


@dataclass(frozen=True)
class BackupSettings:
    filename_prefix: str = "doggy-daycare-backup"
    startup_delay_sec: float = 2.0
    default_max_backups: int = 100
    default_interval_minutes: int = 30
    min_backups: int = 10
    max_backups: int = 200
    min_interval_minutes: int = 5
    max_interval_minutes: int = 480
    snapshot_version: str = "2.0"


BACKUP = BackupSettings()


@dataclass(frozen=True)
class UISettings:
    app_title: str = APP_NAME
    theme_mode: str = "system"
    color_scheme_seed: str = "#0EA5E9"
    window_min_width: int = 720
    window_min_height: int = 540
    status_refresh_sec: int = 5
    log_tail_lines: int = 100


UI = UISettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "EXPORT_DIR",
    "DB_PATH",
    "CONFIG_PATH",
    "LOG_PATH",
    "SYNC",
    "CONNECTIVITY",
    "BACKUP",
    "UI",
    "get_default_data_dir",
]
