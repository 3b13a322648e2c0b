"""SQLModel table for queued store mutations awaiting application."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now
from models.dog import new_id


class OperationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntityType(str, Enum):
    DOG = "dog"
    DAILY_RECORD = "daily_record"
    DAY_DATA = "day_data"
    SETTINGS = "settings"


class OperationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncOp(SQLModel, table=True):
    __tablename__ = "sync_operation"

    id: str = Field(default_factory=new_id, primary_key=True)
    kind: str = Field(index=True)
    entity_type: str = Field(index=True)
    payload: str
    created_at: datetime = Field(default_factory=utc_now)
    retries: int = Field(default=0)
    max_retries: int = Field(default=3)
    last_attempt: Optional[datetime] = None
    last_error: Optional[str] = None
    status: str = Field(default=OperationStatus.PENDING.value)
    position: int = Field(default=0, index=True)


__all__ = ["EntityType", "OperationKind", "OperationStatus", "SyncOp"]
