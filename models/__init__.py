"""ORM models exposed by the daycare application."""
from .dog import Dog
from .daily_record import DailyRecord, DayData
from .business import BusinessSettings
from .schedule import RecurringSchedule
from .sync_op import EntityType, OperationKind, OperationStatus, SyncOp

__all__ = [
    "BusinessSettings",
    "DailyRecord",
    "DayData",
    "Dog",
    "EntityType",
    "OperationKind",
    "OperationStatus",
    "RecurringSchedule",
    "SyncOp",
]
