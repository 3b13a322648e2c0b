"""Full-store snapshots to a cloud-synced folder, with retention and restore."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.errors import DaycareError, RestoreError, as_daycare_error
from core.log import get_logger
from core.settings import BACKUP, CONFIG_PATH
from datetime_utils import utc_now
from services.events import ObserverRegistry
from services.scheduler import DelayedTask, PeriodicTask
from storage.backup import (
    SnapshotFile,
    list_snapshots,
    next_snapshot_path,
    prune_snapshots,
    read_snapshot,
    write_snapshot,
)
from storage.config import CloudBackupConfig, load_config, save_config, validate_backup_config
from storage.store import SNAPSHOT_KEYS, DaycareStore


@dataclass
class BackupResult:
    success: bool
    message: str
    filename: Optional[str] = None
    path: Optional[Path] = None


@dataclass
class RestoreResult:
    success: bool
    message: str
    counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class BackupEvent:
    """``result`` is None when a backup starts and set once it finishes."""

    at: datetime
    result: Optional[BackupResult] = None


class BackupService:
    """Writes, rotates, lists and restores snapshot files.

    At most one backup or restore runs at a time; a second call while one is
    running returns a failed result immediately. Failed backups are not
    retried here, the next timer tick or manual trigger is the retry.
    """

    def __init__(
        self,
        store: DaycareStore,
        *,
        config_path: Optional[Path] = None,
        is_online: Callable[[], bool] = lambda: True,
        prefix: str = BACKUP.filename_prefix,
        startup_delay: float = BACKUP.startup_delay_sec,
    ) -> None:
        self.store = store
        self.config_path = Path(config_path or CONFIG_PATH)
        self._config = load_config(self.config_path).backup
        self._is_online = is_online
        self.prefix = prefix
        self.startup_delay = startup_delay
        self._in_progress = False
        self.last_attempt: Optional[datetime] = None
        self._timer: Optional[PeriodicTask] = None
        self._startup: Optional[DelayedTask] = None
        self._scheduled = False
        self.events: ObserverRegistry[BackupEvent] = ObserverRegistry("backup")
        self.logger = get_logger("backup")

    # ------------------------------------------------------------------
    # configuration
    @property
    def config(self) -> CloudBackupConfig:
        return replace(self._config)

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def update_config(self, config: Optional[CloudBackupConfig] = None, **changes: Any) -> CloudBackupConfig:
        """Validate, persist and re-arm the backup timer with the new interval."""
        updated = replace(config or self._config)
        for key, value in changes.items():
            if not hasattr(updated, key):
                raise AttributeError(key)
            setattr(updated, key, value)
        if config is not None and "last_sync" not in changes:
            updated.last_sync = self._config.last_sync
        validate_backup_config(updated)
        await asyncio.to_thread(self._persist, updated)
        self._config = updated
        self.logger.info(
            "Backup settings updated (enabled=%s, every %d min, keep %d)",
            updated.enabled,
            updated.sync_interval_minutes,
            updated.max_backups,
        )
        if self._scheduled:
            self._install_timer()
        return replace(updated)

    def _persist(self, backup: CloudBackupConfig) -> None:
        cfg = load_config(self.config_path)
        cfg.backup = backup
        save_config(cfg, self.config_path)

    # ------------------------------------------------------------------
    # scheduling
    def start_schedule(self, *, startup: bool = False) -> None:
        self._scheduled = True
        self._install_timer()
        cfg = self._config
        if startup and cfg.enabled and cfg.auto_sync_on_startup and cfg.cloud_directory:
            if self._startup is not None:
                self._startup.stop()
            self._startup = DelayedTask("startup-backup", self.startup_delay, self._scheduled_backup).start()

    def stop_schedule(self) -> None:
        self._scheduled = False
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        if self._startup is not None:
            self._startup.stop()
            self._startup = None

    @property
    def timer_interval(self) -> Optional[float]:
        return self._timer.interval if self._timer is not None and self._timer.running else None

    def _install_timer(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        cfg = self._config
        if cfg.enabled and cfg.sync_interval_minutes > 0:
            self._timer = PeriodicTask(
                "backup-timer", cfg.sync_interval_minutes * 60, self._scheduled_backup
            ).start()

    async def _scheduled_backup(self) -> None:
        result = await self.perform_backup()
        if not result.success:
            self.logger.info("Scheduled backup skipped or failed: %s", result.message)

    # ------------------------------------------------------------------
    # backup
    async def perform_backup(self, *, require_online: bool = True) -> BackupResult:
        cfg = self._config
        if not cfg.enabled:
            return BackupResult(False, "Backup is not enabled")
        if not cfg.cloud_directory:
            return BackupResult(False, "Cloud directory not configured")
        if require_online and not self._is_online():
            return BackupResult(False, "Cannot back up while offline")
        return await self._run_backup(Path(cfg.cloud_directory), cfg.max_backups, record=True)

    async def export_to(self, directory: str | Path) -> BackupResult:
        """Manual export: no enabled/online precondition, no rotation."""
        return await self._run_backup(Path(directory), None, record=False)

    def _write(self, directory: Path, document: Dict[str, Any]) -> Path:
        target = next_snapshot_path(directory, self.prefix)
        return write_snapshot(target, document)

    async def _run_backup(self, directory: Path, max_backups: Optional[int], *, record: bool) -> BackupResult:
        if self._in_progress:
            return BackupResult(False, "Backup is already in progress")
        self._in_progress = True
        self.last_attempt = utc_now()
        self.events.emit(BackupEvent(at=self.last_attempt))
        try:
            document = await asyncio.to_thread(self.store.export_snapshot)
            path = await asyncio.to_thread(self._write, directory, document)
        except Exception as exc:
            error = as_daycare_error(exc)
            self.logger.error("Backup to %s failed: %s", directory, error.message)
            result = BackupResult(
                False,
                f"Backup failed: {error.message}. Check directory path and permissions.",
            )
        else:
            self.logger.info("Successfully saved backup to: %s", path)
            if max_backups is not None:
                await self._prune(directory, max_backups)
            if record:
                await self._record_success()
            result = BackupResult(True, "Backup completed successfully", filename=path.name, path=path)
        finally:
            self._in_progress = False
        self.events.emit(BackupEvent(at=utc_now(), result=result))
        return result

    async def _prune(self, directory: Path, max_backups: int) -> None:
        try:
            await asyncio.to_thread(prune_snapshots, directory, self.prefix, max_backups)
        except Exception as exc:
            self.logger.warning("Failed to cleanup old backups: %s", exc)

    async def _record_success(self) -> None:
        updated = replace(self._config, last_sync=utc_now())
        self._config = updated
        try:
            await asyncio.to_thread(self._persist, updated)
        except OSError as exc:
            self.logger.warning("Could not persist last backup time: %s", exc)

    # ------------------------------------------------------------------
    # listing / restore
    async def list_backups(self, directory: Optional[str | Path] = None) -> List[SnapshotFile]:
        folder = directory or self._config.cloud_directory
        if not folder:
            return []
        return await asyncio.to_thread(list_snapshots, folder, self.prefix)

    async def restore_from_backup(self, path: str | Path) -> RestoreResult:
        """Replace the whole store with the snapshot at ``path``.

        Destructive: nothing is merged. The store is only touched after the
        document parsed and passed validation.
        """
        if self._in_progress:
            return RestoreResult(False, "Restore failed: a backup is in progress")
        self._in_progress = True
        try:
            document = await asyncio.to_thread(read_snapshot, path)
            if not any(key in document for key in SNAPSHOT_KEYS):
                raise RestoreError("Invalid backup file format")
            counts = await asyncio.to_thread(self.store.replace_all, document)
        except DaycareError as exc:
            self.logger.error("Restore from %s rejected: %s", path, exc.message)
            return RestoreResult(False, f"Restore failed: {exc.message}")
        except Exception as exc:
            self.logger.exception("Restore from %s failed", path)
            return RestoreResult(False, f"Restore failed: {as_daycare_error(exc).message}")
        finally:
            self._in_progress = False
        self.logger.info("Restored store from %s: %s", path, counts)
        return RestoreResult(True, "Data restored successfully from backup", counts=counts)

    # ------------------------------------------------------------------
    async def validate_directory(self, directory: str) -> Tuple[bool, str]:
        if not directory or not directory.strip():
            return False, "Cloud directory path is required"
        folder = Path(directory).expanduser()
        if not folder.exists():
            return False, "Directory does not exist"
        if not folder.is_dir():
            return False, "Cloud path is not a directory"
        probe = folder / f".{self.prefix}-write-test-{int(utc_now().timestamp() * 1000)}.json"
        try:
            await asyncio.to_thread(write_snapshot, probe, {"test": True})
        except DaycareError as exc:
            cause = exc.__cause__
            if isinstance(cause, PermissionError):
                return False, "Permission denied - check directory access rights"
            return False, f"Cannot access directory: {exc.message}"
        finally:
            try:
                probe.unlink()
            except OSError:
                pass
        return True, "Cloud directory is accessible"

    def status(self) -> dict:
        cfg = self._config
        next_backup = None
        if cfg.enabled and cfg.last_sync is not None:
            next_backup = cfg.last_sync + timedelta(minutes=cfg.sync_interval_minutes)
        return {
            "enabled": cfg.enabled,
            "lastBackup": cfg.last_sync,
            "lastAttempt": self.last_attempt,
            "inProgress": self._in_progress,
            "nextScheduledBackup": next_backup,
            "configuration": replace(cfg),
        }


__all__ = ["BackupEvent", "BackupResult", "BackupService", "RestoreResult"]
