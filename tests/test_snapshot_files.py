import json
import os
from datetime import datetime, timezone

import pytest

from core.errors import BackupError, RestoreError
from storage.backup import (
    list_snapshots,
    next_snapshot_path,
    prune_snapshots,
    read_snapshot,
    snapshot_filename,
    write_snapshot,
)


PREFIX = "doggy-daycare-backup"
WHEN = datetime(2024, 1, 15, 14, 30, 45, 123456, tzinfo=timezone.utc)


def test_snapshot_filename_format():
    assert snapshot_filename(PREFIX, WHEN) == "doggy-daycare-backup-2024-01-15T14-30-45-123Z.json"


def test_naive_timestamps_are_treated_as_utc():
    naive = WHEN.replace(tzinfo=None)
    assert snapshot_filename(PREFIX, naive) == snapshot_filename(PREFIX, WHEN)


def test_colliding_name_moves_forward_one_millisecond(tmp_path):
    (tmp_path / snapshot_filename(PREFIX, WHEN)).write_text("{}", encoding="utf-8")
    (tmp_path / "doggy-daycare-backup-2024-01-15T14-30-45-124Z.json").write_text("{}", encoding="utf-8")

    path = next_snapshot_path(tmp_path, PREFIX, WHEN)

    assert path.name == "doggy-daycare-backup-2024-01-15T14-30-45-125Z.json"


def test_write_snapshot_is_atomic_and_pretty(tmp_path):
    target = tmp_path / snapshot_filename(PREFIX, WHEN)
    write_snapshot(target, {"dogs": [{"name": "Rëx"}]})

    text = target.read_text(encoding="utf-8")
    assert json.loads(text) == {"dogs": [{"name": "Rëx"}]}
    assert "\n  " in text
    assert sorted(p.name for p in tmp_path.iterdir()) == [target.name]


def test_write_snapshot_to_missing_directory(tmp_path):
    with pytest.raises(BackupError):
        write_snapshot(tmp_path / "missing" / "x.json", {})

    not_a_dir = tmp_path / "file"
    not_a_dir.write_text("", encoding="utf-8")
    with pytest.raises(BackupError):
        write_snapshot(not_a_dir / "x.json", {})


def _make(folder, name, mtime):
    path = folder / name
    path.write_text("{}", encoding="utf-8")
    os.utime(path, (mtime, mtime))
    return path


def test_list_snapshots_newest_first_and_filters(tmp_path):
    _make(tmp_path, f"{PREFIX}-2024-01-01T00-00-00-000Z.json", 1_700_000_000)
    _make(tmp_path, f"{PREFIX}-2024-01-03T00-00-00-000Z.json", 1_700_000_200)
    _make(tmp_path, f"{PREFIX}-2024-01-02T00-00-00-000Z.json", 1_700_000_100)
    _make(tmp_path, "notes.json", 1_700_000_300)
    _make(tmp_path, f"{PREFIX}-2024-01-04.txt", 1_700_000_300)
    (tmp_path / f"{PREFIX}-dir.json").mkdir()

    items = list_snapshots(tmp_path, PREFIX)

    assert [i.filename[len(PREFIX) + 1:len(PREFIX) + 11] for i in items] == [
        "2024-01-03",
        "2024-01-02",
        "2024-01-01",
    ]
    assert items[0].size_bytes == 2
    assert items[0].modified_time.tzinfo is not None


def test_list_snapshots_same_mtime_uses_name(tmp_path):
    _make(tmp_path, f"{PREFIX}-2024-01-01T00-00-00-001Z.json", 1_700_000_000)
    _make(tmp_path, f"{PREFIX}-2024-01-01T00-00-00-002Z.json", 1_700_000_000)

    items = list_snapshots(tmp_path, PREFIX)

    assert items[0].filename.endswith("002Z.json")


def test_list_snapshots_missing_directory(tmp_path):
    assert list_snapshots(tmp_path / "missing", PREFIX) == []


def test_prune_keeps_newest(tmp_path):
    for day in range(1, 6):
        _make(tmp_path, f"{PREFIX}-2024-01-0{day}T00-00-00-000Z.json", 1_700_000_000 + day)

    removed = prune_snapshots(tmp_path, PREFIX, 2)

    assert len(removed) == 3
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        f"{PREFIX}-2024-01-04T00-00-00-000Z.json",
        f"{PREFIX}-2024-01-05T00-00-00-000Z.json",
    ]


def test_read_snapshot_errors(tmp_path):
    with pytest.raises(RestoreError):
        read_snapshot(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    with pytest.raises(RestoreError):
        read_snapshot(broken)

    listing = tmp_path / "list.json"
    listing.write_text("[]", encoding="utf-8")
    with pytest.raises(RestoreError):
        read_snapshot(listing)
