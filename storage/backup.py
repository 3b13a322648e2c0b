"""Snapshot files in the backup directory: naming, writing, listing and rotation."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.errors import BackupError, RestoreError
from core.log import get_logger
from datetime_utils import UTC, file_timestamp, utc_now


logger = get_logger("backup")


@dataclass(frozen=True)
class SnapshotFile:
    filename: str
    filepath: Path
    modified_time: datetime
    size_bytes: int


def snapshot_filename(prefix: str, when: Optional[datetime] = None) -> str:
    return f"{prefix}-{file_timestamp(when)}.json"


def next_snapshot_path(directory: str | Path, prefix: str, when: Optional[datetime] = None) -> Path:
    """Return a free path; a clash within the same millisecond moves the stamp forward."""
    folder = Path(directory)
    stamp = when or utc_now()
    candidate = folder / snapshot_filename(prefix, stamp)
    while candidate.exists():
        stamp = stamp + timedelta(milliseconds=1)
        candidate = folder / snapshot_filename(prefix, stamp)
    return candidate


def _check_directory(directory: Path) -> None:
    if not directory.exists():
        raise BackupError(f"Cloud directory does not exist: {directory}")
    if not directory.is_dir():
        raise BackupError(f"Cloud path is not a directory: {directory}")


def write_snapshot(destination: str | Path, document: Dict[str, Any]) -> Path:
    """Write ``document`` to ``destination`` through a temp file and rename."""

    target = Path(destination)
    _check_directory(target.parent)
    payload = json.dumps(document, ensure_ascii=False, indent=2)
    tmp = target.with_name(f".{target.name}.tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, target)
    except OSError as exc:
        raise BackupError(f"Failed to write backup to {target}: {exc}") from exc
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass
    return target


def _is_snapshot(path: Path, prefix: str) -> bool:
    return path.is_file() and path.name.startswith(f"{prefix}-") and path.suffix == ".json"


def list_snapshots(directory: str | Path, prefix: str) -> List[SnapshotFile]:
    """Snapshot metadata, newest first. File contents are not read."""

    folder = Path(directory)
    if not folder.is_dir():
        return []
    result: List[SnapshotFile] = []
    for path in folder.iterdir():
        if not _is_snapshot(path, prefix):
            continue
        try:
            stat = path.stat()
        except OSError:
            continue
        result.append(
            SnapshotFile(
                filename=path.name,
                filepath=path,
                modified_time=datetime.fromtimestamp(stat.st_mtime, UTC),
                size_bytes=stat.st_size,
            )
        )
    # Same-second mtimes are common on coarse filesystems; the name breaks the tie.
    result.sort(key=lambda item: (item.modified_time, item.filename), reverse=True)
    return result


def prune_snapshots(directory: str | Path, prefix: str, max_backups: int) -> List[Path]:
    """Delete the oldest snapshots so that at most ``max_backups`` remain."""

    keep = max(1, int(max_backups))
    removed: List[Path] = []
    for item in list_snapshots(directory, prefix)[keep:]:
        try:
            item.filepath.unlink()
        except OSError as exc:
            logger.warning("Failed to remove old backup %s: %s", item.filepath, exc)
            continue
        logger.info("Removed old backup: %s", item.filepath)
        removed.append(item.filepath)
    return removed


def read_snapshot(path: str | Path) -> Dict[str, Any]:
    source = Path(path)
    try:
        raw = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise RestoreError(f"Cannot read backup file {source}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RestoreError(f"Backup file is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise RestoreError("Invalid backup file format")
    return data


__all__ = [
    "SnapshotFile",
    "list_snapshots",
    "next_snapshot_path",
    "prune_snapshots",
    "read_snapshot",
    "snapshot_filename",
    "write_snapshot",
]
