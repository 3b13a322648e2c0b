from __future__ import annotations

import itertools
import json
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from core.errors import ValidationError
from core.settings import SYNC
from datetime_utils import ensure_utc, utc_now
from models.dog import new_id
from models.sync_op import EntityType, OperationKind, OperationStatus, SyncOp
from storage.db import get_session


# The settings row is a singleton and is never removed.
UNSUPPORTED = frozenset({(EntityType.SETTINGS, OperationKind.DELETE)})


@dataclass
class SyncOperation:
    kind: OperationKind
    entity_type: EntityType
    payload: Dict[str, Any]
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    retries: int = 0
    max_retries: int = SYNC.max_retries
    last_attempt: Optional[datetime] = None
    status: OperationStatus = OperationStatus.PENDING
    last_error: Optional[str] = None
    position: int = 0

    @classmethod
    def new(
        cls,
        kind: OperationKind | str,
        entity_type: EntityType | str,
        payload: Dict[str, Any],
        *,
        max_retries: int = SYNC.max_retries,
    ) -> "SyncOperation":
        try:
            kind = OperationKind(kind)
            entity_type = EntityType(entity_type)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if max_retries < 1:
            raise ValidationError("max_retries must be at least 1")
        if (entity_type, kind) in UNSUPPORTED:
            raise ValidationError(f"Cannot {kind.value} {entity_type.value}")
        return cls(kind=kind, entity_type=entity_type, payload=dict(payload), max_retries=max_retries)

    @property
    def exhausted(self) -> bool:
        return self.retries >= self.max_retries


def _to_record(op: SyncOperation) -> SyncOp:
    return SyncOp(
        id=op.id,
        kind=op.kind.value,
        entity_type=op.entity_type.value,
        payload=json.dumps(op.payload, ensure_ascii=False, default=str),
        created_at=op.created_at,
        retries=op.retries,
        max_retries=op.max_retries,
        last_attempt=op.last_attempt,
        last_error=op.last_error,
        status=op.status.value,
        position=op.position,
    )


def _from_record(row: SyncOp) -> SyncOperation:
    try:
        payload = json.loads(row.payload)
    except json.JSONDecodeError:
        payload = {}
    return SyncOperation(
        id=row.id,
        kind=OperationKind(row.kind),
        entity_type=EntityType(row.entity_type),
        payload=payload if isinstance(payload, dict) else {},
        created_at=ensure_utc(row.created_at),
        retries=row.retries,
        max_retries=row.max_retries,
        last_attempt=ensure_utc(row.last_attempt),
        status=OperationStatus(row.status),
        last_error=row.last_error,
        position=row.position,
    )


class SyncQueue:
    """FIFO of pending store mutations mirrored into the ``sync_operation`` table.

    The in-memory deque is the working copy; every change is written through
    so a restart resumes with the same operations in the same order.
    """

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory
        self._ops: Deque[SyncOperation] = deque()
        self._positions = itertools.count(1)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # durable storage
    def _save(self, op: SyncOperation) -> None:
        with self._session_factory() as session:
            record = session.get(SyncOp, op.id)
            fresh = _to_record(op)
            if record is None:
                session.add(fresh)
            else:
                for name in SyncOp.model_fields:
                    if name != "id":
                        setattr(record, name, getattr(fresh, name))
                session.add(record)
            session.commit()

    def _delete(self, op_id: str) -> None:
        with self._session_factory() as session:
            record = session.get(SyncOp, op_id)
            if record:
                session.delete(record)
                session.commit()

    def load(self) -> int:
        """Replace the in-memory queue with what is persisted."""
        with self._session_factory() as session:
            rows = list(session.exec(select(SyncOp).order_by(SyncOp.position.asc(), SyncOp.created_at.asc())))
        with self._lock:
            self._ops.clear()
            last = 0
            for row in rows:
                op = _from_record(row)
                if op.status == OperationStatus.PROCESSING:
                    op.status = OperationStatus.PENDING
                self._ops.append(op)
                last = max(last, op.position)
            self._positions = itertools.count(last + 1)
            return len(self._ops)

    # ------------------------------------------------------------------
    # queue API
    def enqueue(self, op: SyncOperation) -> SyncOperation:
        with self._lock:
            if any(existing.id == op.id for existing in self._ops):
                raise ValidationError(f"Operation {op.id} is already queued")
            op.status = OperationStatus.PENDING
            op.position = next(self._positions)
            self._save(op)
            self._ops.append(op)
            return replace(op)

    def head(self) -> Optional[SyncOperation]:
        with self._lock:
            return self._ops[0] if self._ops else None

    def get(self, op_id: str) -> Optional[SyncOperation]:
        with self._lock:
            for op in self._ops:
                if op.id == op_id:
                    return op
            return None

    def mark_processing(self, op_id: str) -> SyncOperation:
        with self._lock:
            op = self._require(op_id)
            op.status = OperationStatus.PROCESSING
            op.last_attempt = utc_now()
            self._save(op)
            return replace(op)

    def complete(self, op_id: str) -> SyncOperation:
        with self._lock:
            op = self._require(op_id)
            self._ops.remove(op)
            self._delete(op_id)
            op.status = OperationStatus.COMPLETED
            return replace(op)

    def record_failure(self, op_id: str, error: str) -> SyncOperation:
        """Count a failed attempt; requeue at the tail or drop once exhausted."""
        with self._lock:
            op = self._require(op_id)
            op.retries = min(op.retries + 1, op.max_retries)
            op.last_error = (error or "")[: SYNC.error_max_length]
            self._ops.remove(op)
            if op.exhausted:
                self._delete(op_id)
                op.status = OperationStatus.FAILED
                return replace(op)
            op.status = OperationStatus.PENDING
            op.position = next(self._positions)
            self._save(op)
            self._ops.append(op)
            return replace(op)

    def clear(self) -> int:
        with self._lock:
            removed = len(self._ops)
            self._ops.clear()
            with self._session_factory() as session:
                session.execute(delete(SyncOp))
                session.commit()
            return removed

    def snapshot(self) -> List[SyncOperation]:
        with self._lock:
            return [replace(op) for op in self._ops]

    def ids(self) -> List[str]:
        with self._lock:
            return [op.id for op in self._ops]

    def count(self) -> int:
        with self._lock:
            return len(self._ops)

    def __len__(self) -> int:
        return self.count()

    def _require(self, op_id: str) -> SyncOperation:
        op = self.get(op_id)
        if op is None:
            raise KeyError(op_id)
        return op


__all__ = ["SyncOperation", "SyncQueue", "UNSUPPORTED"]
