"""Mutation entry points used by the UI: apply tentatively, then queue."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping

from core.errors import ValidationError
from models.dog import new_id
from models.sync_op import EntityType, OperationKind
from services.sync_processor import SyncProcessor
from services.sync_queue import SyncOperation
from services.tentative import TentativeState
from storage.store import DaycareStore


DOGS = "dogs"
DAILY_RECORDS = "daily_records"
DAY_DATA = "day_data"
SETTINGS = "settings"


def _record_key(dog_id: str, date: str) -> str:
    return f"{dog_id}:{date}"


class DaycareService:
    def __init__(self, processor: SyncProcessor, state: TentativeState, store: DaycareStore):
        self.processor = processor
        self.state = state
        self.store = store

    async def load(self) -> None:
        """Seed the tentative view from the store."""
        dogs = await asyncio.to_thread(self.store.list_dogs)
        settings = await asyncio.to_thread(self.store.get_settings)
        self.state.seed(DOGS, {dog["id"]: dog for dog in dogs})
        self.state.seed(SETTINGS, {SETTINGS: settings})

    async def _submit(
        self,
        kind: OperationKind,
        entity: EntityType,
        collection: str,
        key: str,
        payload: Dict[str, Any],
        view: Dict[str, Any] | None,
    ) -> SyncOperation:
        op = SyncOperation.new(kind, entity, payload)
        self.state.apply(op.id, collection, key, view)
        try:
            return await self.processor.enqueue(op)
        except Exception:
            self.state.rollback(op.id, "could not be queued")
            raise

    # ----- dogs -----
    async def add_dog(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        if not str(data.get("name") or "").strip():
            raise ValidationError("Dog name is required")
        dog = {**data, "id": data.get("id") or new_id()}
        await self._submit(OperationKind.CREATE, EntityType.DOG, DOGS, dog["id"], dog, dog)
        return dog

    async def update_dog(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        dog_id = data.get("id")
        if not dog_id:
            raise ValidationError("Dog update requires an id")
        merged = {**(self.state.get(DOGS, dog_id) or {}), **data}
        await self._submit(OperationKind.UPDATE, EntityType.DOG, DOGS, dog_id, dict(data), merged)
        return merged

    async def delete_dog(self, dog_id: str) -> None:
        await self._submit(OperationKind.DELETE, EntityType.DOG, DOGS, dog_id, {"id": dog_id}, None)

    # ----- attendance -----
    async def save_daily_record(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        if not data.get("dog_id") or not data.get("date"):
            raise ValidationError("Daily record requires dog_id and date")
        key = _record_key(data["dog_id"], data["date"])
        existing = self.state.get(DAILY_RECORDS, key)
        kind = OperationKind.UPDATE if existing else OperationKind.CREATE
        merged = {**(existing or {}), **data}
        await self._submit(kind, EntityType.DAILY_RECORD, DAILY_RECORDS, key, dict(data), merged)
        return merged

    async def save_day_data(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        if not data.get("date"):
            raise ValidationError("Day data requires a date")
        existing = self.state.get(DAY_DATA, data["date"])
        kind = OperationKind.UPDATE if existing else OperationKind.CREATE
        merged = {**(existing or {}), **data}
        await self._submit(kind, EntityType.DAY_DATA, DAY_DATA, data["date"], dict(data), merged)
        return merged

    # ----- settings -----
    async def update_settings(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        merged = {**(self.state.get(SETTINGS, SETTINGS) or {}), **data}
        await self._submit(OperationKind.UPDATE, EntityType.SETTINGS, SETTINGS, SETTINGS, dict(data), merged)
        return merged


__all__ = ["DaycareService"]
