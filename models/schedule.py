from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now
from models.dog import new_id


class RecurringSchedule(SQLModel, table=True):
    __tablename__ = "recurring_schedule"

    id: str = Field(default_factory=new_id, primary_key=True)
    dog_id: str = Field(index=True)
    weekdays: str = "[]"  # JSON list, Monday == 0
    start_date: str
    end_date: Optional[str] = None
    active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None


__all__ = ["RecurringSchedule"]
