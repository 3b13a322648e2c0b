"""Local data store for dogs, attendance, settings and schedules."""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from core.errors import RecordNotFoundError, StoreError, ValidationError
from core.log import get_logger
from core.settings import BACKUP
from datetime_utils import to_rfc3339_utc, utc_now
from models import BusinessSettings, DailyRecord, DayData, Dog, RecurringSchedule
from models.business import SETTINGS_ID
from storage.db import get_session


SNAPSHOT_KEYS = ("dogs", "daily_records", "day_data", "settings", "recurring_schedules")

# Columns persisted as JSON text but exchanged as structured values.
JSON_FIELDS: Dict[Type[SQLModel], tuple[str, ...]] = {
    Dog: (),
    DailyRecord: ("checklist",),
    DayData: ("attendance",),
    BusinessSettings: ("templates", "notification_settings"),
    RecurringSchedule: ("weekdays",),
}

_IMMUTABLE = ("id", "created_at")

logger = get_logger("store")


def _loads(payload: Any) -> Any:
    if not isinstance(payload, str):
        return payload
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        return payload


def _to_row(model: Type[SQLModel], data: Mapping[str, Any]) -> SQLModel:
    values = dict(data)
    for name in JSON_FIELDS.get(model, ()):
        if name in values and not isinstance(values[name], str):
            values[name] = json.dumps(values[name], ensure_ascii=False, sort_keys=True)
    try:
        return model.model_validate(values)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {model.__name__} data", details=exc.errors()) from exc


def _to_dict(row: SQLModel) -> Dict[str, Any]:
    data = row.model_dump(mode="json")
    for name in JSON_FIELDS.get(type(row), ()):
        data[name] = _loads(data.get(name))
    return data


def _merge(row: SQLModel, changes: Mapping[str, Any]) -> None:
    merged = {**row.model_dump(), **dict(changes)}
    validated = _to_row(type(row), merged)
    for name in type(row).model_fields:
        if name in _IMMUTABLE:
            continue
        setattr(row, name, getattr(validated, name))
    row.updated_at = utc_now()


class DaycareStore:
    """CRUD helpers plus whole-store export/replace over ``daycare.db``."""

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    def _commit(self, session: Session, row: SQLModel) -> Dict[str, Any]:
        try:
            session.add(row)
            session.commit()
            session.refresh(row)
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Could not save {type(row).__name__}: {exc}") from exc
        return _to_dict(row)

    # ----- dogs -----
    def list_dogs(self, *, active_only: bool = False) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            stmt = select(Dog)
            if active_only:
                stmt = stmt.where(Dog.is_active == True)  # noqa: E712
            rows = session.exec(stmt.order_by(Dog.name)).all()
            return [_to_dict(row) for row in rows]

    def get_dog(self, dog_id: str) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            row = session.get(Dog, dog_id)
            return _to_dict(row) if row else None

    def add_dog(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        row = _to_row(Dog, data)
        with self._session_factory() as session:
            if session.get(Dog, row.id) is not None:
                raise ValidationError(f"Dog {row.id} already exists")
            return self._commit(session, row)

    def update_dog(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        dog_id = data.get("id")
        if not dog_id:
            raise ValidationError("Dog update requires an id")
        with self._session_factory() as session:
            row = session.get(Dog, dog_id)
            if row is None:
                raise RecordNotFoundError(f"Dog {dog_id} not found")
            _merge(row, data)
            return self._commit(session, row)

    def delete_dog(self, dog_id: str) -> None:
        with self._session_factory() as session:
            row = session.get(Dog, dog_id)
            if row is None:
                raise RecordNotFoundError(f"Dog {dog_id} not found")
            session.delete(row)
            session.commit()

    # ----- daily records -----
    def get_daily_record(self, dog_id: str, date: str) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            row = session.exec(
                select(DailyRecord).where(DailyRecord.dog_id == dog_id, DailyRecord.date == date)
            ).first()
            return _to_dict(row) if row else None

    def list_daily_records(self, date: str) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            rows = session.exec(select(DailyRecord).where(DailyRecord.date == date)).all()
            return [_to_dict(row) for row in rows]

    def save_daily_record(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        dog_id = data.get("dog_id")
        date = data.get("date")
        if not dog_id or not date:
            raise ValidationError("Daily record requires dog_id and date")
        with self._session_factory() as session:
            row = session.exec(
                select(DailyRecord).where(DailyRecord.dog_id == dog_id, DailyRecord.date == date)
            ).first()
            if row is None:
                row = _to_row(DailyRecord, data)
            else:
                _merge(row, {k: v for k, v in data.items() if k != "id"})
            return self._commit(session, row)

    def delete_daily_record(self, record_id: str) -> None:
        with self._session_factory() as session:
            row = session.get(DailyRecord, record_id)
            if row is None:
                raise RecordNotFoundError(f"Daily record {record_id} not found")
            session.delete(row)
            session.commit()

    # ----- day data -----
    def get_day_data(self, date: str) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            row = session.exec(select(DayData).where(DayData.date == date)).first()
            return _to_dict(row) if row else None

    def save_day_data(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        date = data.get("date")
        if not date:
            raise ValidationError("Day data requires a date")
        with self._session_factory() as session:
            row = session.exec(select(DayData).where(DayData.date == date)).first()
            if row is None:
                row = _to_row(DayData, data)
            else:
                _merge(row, {k: v for k, v in data.items() if k != "id"})
            return self._commit(session, row)

    def delete_day_data(self, date: str) -> None:
        with self._session_factory() as session:
            row = session.exec(select(DayData).where(DayData.date == date)).first()
            if row is None:
                raise RecordNotFoundError(f"No attendance sheet for {date}")
            session.delete(row)
            session.commit()

    # ----- settings -----
    def get_settings(self) -> Dict[str, Any]:
        with self._session_factory() as session:
            row = session.get(BusinessSettings, SETTINGS_ID)
            if row is None:
                row = BusinessSettings()
                return self._commit(session, row)
            return _to_dict(row)

    def update_settings(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        with self._session_factory() as session:
            row = session.get(BusinessSettings, SETTINGS_ID) or BusinessSettings()
            _merge(row, {k: v for k, v in data.items() if k != "id"})
            return self._commit(session, row)

    # ----- recurring schedules -----
    def list_schedules(self, dog_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            stmt = select(RecurringSchedule)
            if dog_id:
                stmt = stmt.where(RecurringSchedule.dog_id == dog_id)
            return [_to_dict(row) for row in session.exec(stmt).all()]

    def save_schedule(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        with self._session_factory() as session:
            row = session.get(RecurringSchedule, data["id"]) if data.get("id") else None
            if row is None:
                row = _to_row(RecurringSchedule, data)
            else:
                _merge(row, data)
            return self._commit(session, row)

    # ----- whole store -----
    def export_snapshot(self) -> Dict[str, Any]:
        """Serialize every entity collection into one JSON-ready document."""
        with self._session_factory() as session:
            dogs = session.exec(select(Dog).order_by(Dog.created_at, Dog.id)).all()
            records = session.exec(
                select(DailyRecord).order_by(DailyRecord.date, DailyRecord.dog_id)
            ).all()
            days = session.exec(select(DayData).order_by(DayData.date)).all()
            schedules = session.exec(
                select(RecurringSchedule).order_by(RecurringSchedule.created_at, RecurringSchedule.id)
            ).all()
            settings = session.get(BusinessSettings, SETTINGS_ID)
            return {
                "dogs": [_to_dict(row) for row in dogs],
                "daily_records": [_to_dict(row) for row in records],
                "day_data": [_to_dict(row) for row in days],
                "settings": _to_dict(settings) if settings else None,
                "recurring_schedules": [_to_dict(row) for row in schedules],
                "exported_at": to_rfc3339_utc(utc_now()),
                "version": BACKUP.snapshot_version,
            }

    def replace_all(self, snapshot: Mapping[str, Any]) -> Dict[str, int]:
        """Replace the whole store with ``snapshot`` in a single transaction.

        Every row is validated before anything is deleted, so a rejected
        document leaves the existing data untouched.
        """
        if not any(key in snapshot for key in SNAPSHOT_KEYS):
            raise ValidationError("Snapshot contains none of the known collections")

        rows: List[SQLModel] = []
        counts: Dict[str, int] = {}
        for key, model in (
            ("dogs", Dog),
            ("daily_records", DailyRecord),
            ("day_data", DayData),
            ("recurring_schedules", RecurringSchedule),
        ):
            items = snapshot.get(key) or []
            if isinstance(items, Mapping):
                items = list(items.values())
            if not isinstance(items, list):
                raise ValidationError(f"'{key}' must be a list")
            rows.extend(_to_row(model, item) for item in items)
            counts[key] = len(items)

        settings = snapshot.get("settings")
        if settings:
            if not isinstance(settings, Mapping):
                raise ValidationError("'settings' must be an object")
            rows.append(_to_row(BusinessSettings, {**settings, "id": SETTINGS_ID}))
        counts["settings"] = 1 if settings else 0

        with self._session_factory() as session:
            try:
                for model in (DailyRecord, DayData, RecurringSchedule, Dog, BusinessSettings):
                    session.execute(delete(model))
                session.add_all(rows)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Store replace rolled back: %s", exc)
                raise StoreError(f"Restore failed, nothing was changed: {exc}") from exc
        logger.info("Store replaced from snapshot: %s", counts)
        return counts

    def counts(self) -> Dict[str, int]:
        with self._session_factory() as session:
            return {
                "dogs": len(session.exec(select(Dog.id)).all()),
                "daily_records": len(session.exec(select(DailyRecord.id)).all()),
                "day_data": len(session.exec(select(DayData.id)).all()),
                "recurring_schedules": len(session.exec(select(RecurringSchedule.id)).all()),
            }


__all__ = ["DaycareStore", "JSON_FIELDS", "SNAPSHOT_KEYS"]
