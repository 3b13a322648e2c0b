"""Per-dog daily checklist records and per-day attendance sheets."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from datetime_utils import utc_now
from models.dog import new_id


class DailyRecord(SQLModel, table=True):
    __tablename__ = "daily_record"
    __table_args__ = (UniqueConstraint("dog_id", "date", name="ux_daily_record_dog_date"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    dog_id: str = Field(index=True)
    date: str = Field(index=True)  # YYYY-MM-DD
    checklist: str = "{}"  # JSON object: item -> bool
    feeding_times: Optional[str] = None
    drop_off_time: Optional[str] = None
    pick_up_time: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None


class DayData(SQLModel, table=True):
    __tablename__ = "day_data"

    id: str = Field(default_factory=new_id, primary_key=True)
    date: str = Field(index=True, unique=True)
    attendance: str = "{}"  # JSON object: dog_id -> present
    am_temp: Optional[str] = None
    pm_temp: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None


__all__ = ["DailyRecord", "DayData"]
