"""Singleton row with the business profile and message templates."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


SETTINGS_ID = "default"


class BusinessSettings(SQLModel, table=True):
    __tablename__ = "business_settings"

    id: str = Field(default=SETTINGS_ID, primary_key=True)
    business_name: str = "Doggy Daycare"
    business_phone: str = ""
    business_email: Optional[str] = None
    business_address: Optional[str] = None
    auto_backup: bool = False
    templates: str = "{}"
    notification_settings: str = "{}"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None


__all__ = ["BusinessSettings", "SETTINGS_ID"]
