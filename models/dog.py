# daycare/models/dog.py
from typing import Optional
from datetime import datetime
from uuid import uuid4

from sqlmodel import SQLModel, Field

from datetime_utils import utc_now


def new_id() -> str:
    return uuid4().hex


class Dog(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    owner: str = ""
    phone: str = ""
    email: str = ""
    breed: str = ""
    age: str = ""
    vaccine_date: Optional[str] = None
    consent_last_signed: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    medical_conditions: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    behavioral_notes: Optional[str] = None
    photo_url: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
