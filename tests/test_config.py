from datetime import datetime, timezone

import pytest

from core.errors import ValidationError
from storage.config import (
    AppConfig,
    CloudBackupConfig,
    load_config,
    save_config,
    validate_backup_config,
)


def test_missing_or_corrupt_config_gives_defaults(tmp_path):
    path = tmp_path / "config.json"
    assert load_config(path).backup == CloudBackupConfig()

    path.write_text("{ broken", encoding="utf-8")
    assert load_config(path).backup == CloudBackupConfig()

    path.write_text('{"backup": "nope"}', encoding="utf-8")
    assert load_config(path).backup == CloudBackupConfig()


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "nested" / "config.json"
    last = datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)
    cfg = AppConfig(
        backup=CloudBackupConfig(
            enabled=True,
            cloud_directory="/Dropbox/daycare",
            max_backups=20,
            sync_interval_minutes=60,
            last_sync=last,
            auto_sync_on_startup=False,
        )
    )

    save_config(cfg, path)

    assert load_config(path).backup == cfg.backup
    assert not path.with_suffix(".tmp").exists()


def test_bad_numbers_fall_back_to_defaults():
    cfg = CloudBackupConfig.from_dict({"max_backups": "many", "sync_interval_minutes": None})
    assert cfg.max_backups == 100
    assert cfg.sync_interval_minutes == 30


def test_validate_bounds():
    validate_backup_config(CloudBackupConfig(max_backups=10, sync_interval_minutes=480))

    with pytest.raises(ValidationError) as exc:
        validate_backup_config(CloudBackupConfig(max_backups=201, sync_interval_minutes=4))
    assert set(exc.value.details) == {"max_backups", "sync_interval_minutes"}

    with pytest.raises(ValidationError):
        validate_backup_config(CloudBackupConfig(enabled=True, cloud_directory="  "))
