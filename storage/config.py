"""Simple JSON-backed configuration store."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from core.errors import ValidationError
from core.settings import BACKUP, CONFIG_PATH
from datetime_utils import ensure_utc, parse_rfc3339, to_rfc3339_utc


@dataclass
class CloudBackupConfig:
    """Settings for copying snapshots into a cloud-synced folder."""

    enabled: bool = False
    cloud_directory: str = ""
    max_backups: int = BACKUP.default_max_backups
    sync_interval_minutes: int = BACKUP.default_interval_minutes
    last_sync: Optional[datetime] = None
    auto_sync_on_startup: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_sync"] = to_rfc3339_utc(self.last_sync)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CloudBackupConfig":
        defaults = cls()

        def _int(name: str) -> int:
            try:
                return int(data.get(name, getattr(defaults, name)))
            except (TypeError, ValueError):
                return getattr(defaults, name)

        return cls(
            enabled=bool(data.get("enabled", defaults.enabled)),
            cloud_directory=str(data.get("cloud_directory") or ""),
            max_backups=_int("max_backups"),
            sync_interval_minutes=_int("sync_interval_minutes"),
            last_sync=ensure_utc(parse_rfc3339(data.get("last_sync"))),
            auto_sync_on_startup=bool(data.get("auto_sync_on_startup", defaults.auto_sync_on_startup)),
        )


@dataclass
class AppConfig:
    """Lightweight configuration persisted to ``config.json``."""

    backup: CloudBackupConfig = field(default_factory=CloudBackupConfig)


def validate_backup_config(config: CloudBackupConfig) -> None:
    errors: Dict[str, str] = {}
    if not BACKUP.min_backups <= config.max_backups <= BACKUP.max_backups:
        errors["max_backups"] = f"must be between {BACKUP.min_backups} and {BACKUP.max_backups}"
    if not BACKUP.min_interval_minutes <= config.sync_interval_minutes <= BACKUP.max_interval_minutes:
        errors["sync_interval_minutes"] = (
            f"must be between {BACKUP.min_interval_minutes} and {BACKUP.max_interval_minutes}"
        )
    if config.enabled and not config.cloud_directory.strip():
        errors["cloud_directory"] = "is required when cloud backup is enabled"
    if errors:
        summary = "; ".join(f"{key} {message}" for key, message in errors.items())
        raise ValidationError(f"Invalid backup settings: {summary}", details=errors)


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: Optional[Path] = None) -> AppConfig:
    target = path or CONFIG_PATH
    data = _load_raw(target)
    backup = data.get("backup")
    return AppConfig(
        backup=CloudBackupConfig.from_dict(backup if isinstance(backup, dict) else {}),
    )


def save_config(config: AppConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    _ensure_parent(target)
    payload = json.dumps({"backup": config.backup.to_dict()}, ensure_ascii=False, indent=2, sort_keys=True)
    tmp = target.with_suffix(".tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(target)
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass


__all__ = [
    "AppConfig",
    "CloudBackupConfig",
    "load_config",
    "save_config",
    "validate_backup_config",
]
