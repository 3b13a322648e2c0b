import pytest

from core.errors import RecordNotFoundError, ValidationError


def test_dog_crud(store):
    created = store.add_dog({"id": "rex", "name": "Rex", "owner": "Ann"})
    assert created["created_at"]

    updated = store.update_dog({"id": "rex", "breed": "Beagle"})
    assert updated["breed"] == "Beagle"
    assert updated["owner"] == "Ann"
    assert updated["updated_at"]

    store.delete_dog("rex")
    assert store.get_dog("rex") is None
    with pytest.raises(RecordNotFoundError):
        store.delete_dog("rex")
    with pytest.raises(RecordNotFoundError):
        store.update_dog({"id": "rex", "name": "Ghost"})


def test_dog_validation(store):
    store.add_dog({"id": "rex", "name": "Rex"})
    with pytest.raises(ValidationError):
        store.add_dog({"id": "rex", "name": "Rex again"})
    with pytest.raises(ValidationError):
        store.add_dog({"owner": "nobody"})
    with pytest.raises(ValidationError):
        store.update_dog({"name": "No id"})


def test_list_dogs_active_only(store):
    store.add_dog({"id": "a", "name": "Alpha"})
    store.add_dog({"id": "b", "name": "Bravo", "is_active": False})
    assert [d["name"] for d in store.list_dogs()] == ["Alpha", "Bravo"]
    assert [d["name"] for d in store.list_dogs(active_only=True)] == ["Alpha"]


def test_daily_record_upsert_by_dog_and_date(store):
    first = store.save_daily_record({"dog_id": "rex", "date": "2024-01-15", "checklist": {"fed": True}})
    second = store.save_daily_record({"dog_id": "rex", "date": "2024-01-15", "checklist": {"fed": True, "walked": True}})

    assert first["id"] == second["id"]
    assert store.get_daily_record("rex", "2024-01-15")["checklist"] == {"fed": True, "walked": True}
    with pytest.raises(ValidationError):
        store.save_daily_record({"dog_id": "rex"})

    store.delete_daily_record(first["id"])
    assert store.list_daily_records("2024-01-15") == []


def test_day_data_upsert_and_delete(store):
    store.save_day_data({"date": "2024-01-15", "attendance": {"rex": True}})
    store.save_day_data({"date": "2024-01-15", "pm_temp": "19"})

    day = store.get_day_data("2024-01-15")
    assert day["attendance"] == {"rex": True}
    assert day["pm_temp"] == "19"

    store.delete_day_data("2024-01-15")
    with pytest.raises(RecordNotFoundError):
        store.delete_day_data("2024-01-15")


def test_settings_singleton(store):
    defaults = store.get_settings()
    assert defaults["business_name"] == "Doggy Daycare"
    assert defaults["templates"] == {}

    store.update_settings({"business_name": "Happy Paws", "templates": {"reminder": "Hi"}})
    settings = store.get_settings()
    assert settings["business_name"] == "Happy Paws"
    assert settings["templates"] == {"reminder": "Hi"}
    assert settings["id"] == "default"


def test_export_snapshot_shape(store):
    store.add_dog({"id": "rex", "name": "Rex"})
    snapshot = store.export_snapshot()

    assert set(snapshot) == {
        "dogs",
        "daily_records",
        "day_data",
        "settings",
        "recurring_schedules",
        "exported_at",
        "version",
    }
    assert snapshot["version"] == "2.0"
    assert snapshot["exported_at"].endswith("Z")
    assert snapshot["settings"] is None
    assert [d["id"] for d in snapshot["dogs"]] == ["rex"]


def test_replace_all_is_all_or_nothing(store):
    store.add_dog({"id": "rex", "name": "Rex"})

    with pytest.raises(ValidationError):
        store.replace_all({"dogs": [{"id": "ok", "name": "Fine"}, {"id": "bad"}]})
    assert [d["id"] for d in store.list_dogs()] == ["rex"]

    with pytest.raises(ValidationError):
        store.replace_all({"something": "else"})

    counts = store.replace_all({"dogs": [{"id": "zed", "name": "Zed"}], "day_data": []})
    assert counts["dogs"] == 1
    assert store.counts() == {"dogs": 1, "daily_records": 0, "day_data": 0, "recurring_schedules": 0}


def test_schedules(store):
    saved = store.save_schedule({"dog_id": "rex", "weekdays": [0, 3], "start_date": "2024-01-01"})
    store.save_schedule({"id": saved["id"], "active": False})

    schedules = store.list_schedules("rex")
    assert len(schedules) == 1
    assert schedules[0]["weekdays"] == [0, 3]
    assert schedules[0]["active"] is False
    assert store.list_schedules("other") == []
