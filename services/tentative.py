"""Optimistic in-memory view with confirm/rollback driven by sync results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from core.log import get_logger
from models.sync_op import OperationStatus
from services.events import ObserverRegistry
from services.sync_queue import SyncOperation


Key = Tuple[str, str]


@dataclass
class TentativeChange:
    op_id: str
    collection: str
    key: str
    previous: Optional[Dict[str, Any]]  # None: the entity did not exist
    value: Optional[Dict[str, Any]]  # None: the change deletes it
    error: Optional[str] = None


class TentativeState:
    """What the UI shows: confirmed data plus changes still in the queue.

    A change is confirmed when its operation completes. When the operation is
    dropped after its last retry the entity goes back to its previous value
    and ``failures`` is notified so the UI can tell the user.
    """

    def __init__(self) -> None:
        self._view: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._pending: Dict[str, TentativeChange] = {}
        self.failures: ObserverRegistry[TentativeChange] = ObserverRegistry("tentative")
        self.logger = get_logger("tentative")

    def seed(self, collection: str, items: Dict[str, Dict[str, Any]]) -> None:
        self._view[collection] = {key: dict(value) for key, value in items.items()}

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        value = self._view.get(collection, {}).get(key)
        return dict(value) if value is not None else None

    def items(self, collection: str) -> List[Dict[str, Any]]:
        return [dict(value) for value in self._view.get(collection, {}).values()]

    def is_pending(self, collection: str, key: str) -> bool:
        return any(c.collection == collection and c.key == key for c in self._pending.values())

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def apply(self, op_id: str, collection: str, key: str, value: Optional[Dict[str, Any]]) -> TentativeChange:
        bucket = self._view.setdefault(collection, {})
        previous = bucket.get(key)
        change = TentativeChange(
            op_id=op_id,
            collection=collection,
            key=key,
            previous=dict(previous) if previous is not None else None,
            value=dict(value) if value is not None else None,
        )
        self._write(collection, key, change.value)
        self._pending[op_id] = change
        return change

    def on_result(self, op: SyncOperation) -> None:
        if op.status == OperationStatus.COMPLETED:
            self._pending.pop(op.id, None)
        elif op.status == OperationStatus.FAILED:
            self.rollback(op.id, op.last_error)

    def rollback(self, op_id: str, error: Optional[str] = None) -> Optional[TentativeChange]:
        change = self._pending.pop(op_id, None)
        if change is None:
            return None
        change.error = error
        later = [
            c for c in self._pending.values()
            if c.collection == change.collection and c.key == change.key
        ]
        if later:
            # A newer pending change on the same entity now starts from our baseline.
            later[0].previous = change.previous
        else:
            self._write(change.collection, change.key, change.previous)
        self.logger.warning("Rolled back %s %s after failed sync: %s", change.collection, change.key, error)
        self.failures.emit(change)
        return change

    def discard_pending(self) -> int:
        """Forget every pending change and show the values from before them."""
        changes = list(self._pending.values())
        self._pending.clear()
        for change in reversed(changes):
            self._write(change.collection, change.key, change.previous)
        return len(changes)

    def _write(self, collection: str, key: str, value: Optional[Dict[str, Any]]) -> None:
        bucket = self._view.setdefault(collection, {})
        if value is None:
            bucket.pop(key, None)
        else:
            bucket[key] = dict(value)


__all__ = ["TentativeChange", "TentativeState"]
