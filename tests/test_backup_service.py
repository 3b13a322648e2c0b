import asyncio
import json

import pytest

from core.errors import ValidationError
from services.backup_service import BackupService
from storage.config import AppConfig, CloudBackupConfig, load_config, save_config


PREFIX = "doggy-daycare-backup"


@pytest.fixture
def cloud_dir(tmp_path):
    folder = tmp_path / "cloud"
    folder.mkdir()
    return folder


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"


def make_service(store, config_path, cloud_dir, *, online=True, **overrides):
    backup = CloudBackupConfig(enabled=True, cloud_directory=str(cloud_dir), **overrides)
    save_config(AppConfig(backup=backup), config_path)
    return BackupService(store, config_path=config_path, is_online=lambda: online, startup_delay=0)


def seed(store):
    store.add_dog({"id": "rex", "name": "Rex", "owner": "Ann"})
    store.add_dog({"id": "bella", "name": "Bella", "owner": "Bob"})
    store.save_daily_record({"dog_id": "rex", "date": "2024-01-15", "checklist": {"fed": True}})
    store.save_day_data({"date": "2024-01-15", "attendance": {"rex": True}, "am_temp": "21"})
    store.update_settings({"business_name": "Happy Paws", "templates": {"reminder": "Hi {owner}"}})
    store.save_schedule({"id": "sched", "dog_id": "rex", "weekdays": [0, 2, 4], "start_date": "2024-01-01"})


def files_in(folder):
    return sorted(p.name for p in folder.iterdir())


@pytest.mark.asyncio
async def test_rotation_keeps_newest_backups(store, config_path, cloud_dir):
    seed(store)
    service = make_service(store, config_path, cloud_dir, max_backups=2)

    results = [await service.perform_backup() for _ in range(3)]

    assert all(r.success for r in results)
    assert files_in(cloud_dir) == sorted([results[1].filename, results[2].filename])
    assert results[0].filename not in files_in(cloud_dir)
    assert [b.filename for b in await service.list_backups()] == [results[2].filename, results[1].filename]


@pytest.mark.asyncio
async def test_successful_backup_records_last_sync(store, config_path, cloud_dir):
    service = make_service(store, config_path, cloud_dir)
    assert service.config.last_sync is None

    result = await service.perform_backup()

    assert result.success
    assert result.message == "Backup completed successfully"
    assert result.filename.startswith(f"{PREFIX}-") and result.filename.endswith("Z.json")
    assert service.config.last_sync is not None
    assert load_config(config_path).backup.last_sync is not None

    document = json.loads((cloud_dir / result.filename).read_text(encoding="utf-8"))
    assert document["version"] == "2.0"
    assert set(document) >= {"dogs", "daily_records", "day_data", "settings", "recurring_schedules", "exported_at"}


@pytest.mark.asyncio
async def test_backup_preconditions(store, config_path, cloud_dir, tmp_path):
    disabled = make_service(store, config_path, cloud_dir)
    await disabled.update_config(enabled=False)
    assert (await disabled.perform_backup()).message == "Backup is not enabled"

    save_config(AppConfig(backup=CloudBackupConfig(enabled=True, cloud_directory="")), config_path)
    no_dir = BackupService(store, config_path=config_path)
    assert (await no_dir.perform_backup()).message == "Cloud directory not configured"

    offline = make_service(store, config_path, cloud_dir, online=False)
    result = await offline.perform_backup()
    assert result.message == "Cannot back up while offline"
    assert (await offline.perform_backup(require_online=False)).success
    assert len(files_in(cloud_dir)) == 1


@pytest.mark.asyncio
async def test_write_failure_is_reported_not_raised(store, config_path, tmp_path):
    service = make_service(store, config_path, tmp_path / "missing")
    events = []
    service.events.subscribe(events.append)

    result = await service.perform_backup()

    assert not result.success
    assert result.message.startswith("Backup failed:")
    assert "permissions" in result.message
    assert service.config.last_sync is None
    assert [e.result for e in events][0] is None
    assert events[-1].result is result
    assert not service.in_progress


@pytest.mark.asyncio
async def test_concurrent_backup_is_rejected(store, config_path, cloud_dir):
    service = make_service(store, config_path, cloud_dir)

    first = asyncio.create_task(service.perform_backup())
    await asyncio.sleep(0)
    assert service.in_progress
    second = await service.perform_backup()
    assert not second.success
    assert second.message == "Backup is already in progress"

    assert (await first).success
    assert len(files_in(cloud_dir)) == 1


@pytest.mark.asyncio
async def test_export_to_skips_rotation(store, config_path, cloud_dir, tmp_path):
    service = make_service(store, config_path, cloud_dir, max_backups=2)
    export_dir = tmp_path / "exports"
    export_dir.mkdir()

    for _ in range(3):
        assert (await service.export_to(export_dir)).success

    assert len(files_in(export_dir)) == 3
    assert service.config.last_sync is None


@pytest.mark.asyncio
async def test_restore_round_trip(store, config_path, cloud_dir):
    seed(store)
    before = store.export_snapshot()
    service = make_service(store, config_path, cloud_dir)
    backup = await service.perform_backup()

    store.delete_dog("bella")
    store.add_dog({"id": "milo", "name": "Milo"})
    store.update_settings({"business_name": "Changed"})

    result = await service.restore_from_backup(backup.path)

    assert result.success, result.message
    assert result.counts["dogs"] == 2
    after = store.export_snapshot()
    for key in ("dogs", "daily_records", "day_data", "settings", "recurring_schedules"):
        assert after[key] == before[key]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        "{ not json",
        json.dumps(["dogs"]),
        json.dumps({"unrelated": []}),
        json.dumps({"dogs": "not-a-list"}),
    ],
)
async def test_malformed_restore_leaves_store_unchanged(store, config_path, cloud_dir, tmp_path, content):
    seed(store)
    before = store.export_snapshot()
    bad = tmp_path / "bad.json"
    bad.write_text(content, encoding="utf-8")
    service = make_service(store, config_path, cloud_dir)

    result = await service.restore_from_backup(bad)

    assert not result.success
    assert result.message.startswith("Restore failed:")
    after = store.export_snapshot()
    for key in ("dogs", "daily_records", "day_data", "settings", "recurring_schedules"):
        assert after[key] == before[key]


@pytest.mark.asyncio
async def test_restore_without_settings_uses_defaults(store, config_path, cloud_dir, tmp_path):
    seed(store)
    snapshot = tmp_path / "partial.json"
    snapshot.write_text(json.dumps({"dogs": [{"id": "zed", "name": "Zed"}]}), encoding="utf-8")
    service = make_service(store, config_path, cloud_dir)

    result = await service.restore_from_backup(snapshot)

    assert result.success
    assert [d["name"] for d in store.list_dogs()] == ["Zed"]
    assert store.list_schedules() == []
    assert store.get_settings()["business_name"] == "Doggy Daycare"


@pytest.mark.asyncio
async def test_validate_directory(store, config_path, cloud_dir, tmp_path):
    service = make_service(store, config_path, cloud_dir)

    assert await service.validate_directory("  ") == (False, "Cloud directory path is required")
    assert await service.validate_directory(str(tmp_path / "nope")) == (False, "Directory does not exist")
    assert await service.validate_directory(str(cloud_dir)) == (True, "Cloud directory is accessible")
    assert files_in(cloud_dir) == []


@pytest.mark.asyncio
async def test_update_config_validates_and_reinstalls_timer(store, config_path, cloud_dir):
    service = make_service(store, config_path, cloud_dir)
    service.start_schedule()
    assert service.timer_interval == 30 * 60

    with pytest.raises(ValidationError):
        await service.update_config(max_backups=5)
    with pytest.raises(ValidationError):
        await service.update_config(sync_interval_minutes=1000)
    assert service.config.max_backups == 100

    await service.update_config(sync_interval_minutes=10, max_backups=50)
    assert service.timer_interval == 10 * 60
    stored = load_config(config_path).backup
    assert (stored.sync_interval_minutes, stored.max_backups) == (10, 50)

    await service.update_config(enabled=False)
    assert service.timer_interval is None
    service.stop_schedule()


@pytest.mark.asyncio
async def test_startup_backup_runs_after_delay(store, config_path, cloud_dir):
    service = make_service(store, config_path, cloud_dir)
    service.start_schedule(startup=True)

    for _ in range(100):
        if files_in(cloud_dir):
            break
        await asyncio.sleep(0.02)
    service.stop_schedule()

    assert len(files_in(cloud_dir)) == 1


@pytest.mark.asyncio
async def test_status_reports_next_backup(store, config_path, cloud_dir):
    service = make_service(store, config_path, cloud_dir, sync_interval_minutes=15)
    assert service.status()["nextScheduledBackup"] is None

    await service.perform_backup()
    status = service.status()
    assert status["enabled"] is True
    assert (status["nextScheduledBackup"] - status["lastBackup"]).total_seconds() == 15 * 60
    assert status["inProgress"] is False
