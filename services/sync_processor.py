from __future__ import annotations

import asyncio
import inspect
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Tuple

from core.errors import RecordNotFoundError, UnsupportedOperationError, ValidationError
from core.log import get_logger
from core.settings import SYNC
from datetime_utils import utc_now
from models.sync_op import EntityType, OperationKind, OperationStatus
from services.events import ObserverRegistry
from services.sync_queue import SyncOperation, SyncQueue
from storage.store import DaycareStore


Handler = Callable[[Dict[str, Any]], Any]
HandlerKey = Tuple[EntityType, OperationKind]


def _require(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not value:
        raise ValidationError(f"Payload is missing '{key}'")
    return str(value)


def build_store_handlers(store: DaycareStore) -> Dict[HandlerKey, Handler]:
    """Map every supported (entity, kind) pair onto a store call.

    Creates of an id that already exists become updates and deletes of a
    missing row count as done, so replaying an operation whose completion was
    never recorded has no further effect.
    """

    def create_dog(payload):
        if payload.get("id") and store.get_dog(payload["id"]) is not None:
            return store.update_dog(payload)
        return store.add_dog(payload)

    def delete_dog(payload):
        try:
            store.delete_dog(_require(payload, "id"))
        except RecordNotFoundError:
            pass

    def delete_daily_record(payload):
        try:
            store.delete_daily_record(_require(payload, "id"))
        except RecordNotFoundError:
            pass

    def delete_day_data(payload):
        try:
            store.delete_day_data(_require(payload, "date"))
        except RecordNotFoundError:
            pass

    return {
        (EntityType.DOG, OperationKind.CREATE): create_dog,
        (EntityType.DOG, OperationKind.UPDATE): store.update_dog,
        (EntityType.DOG, OperationKind.DELETE): delete_dog,
        (EntityType.DAILY_RECORD, OperationKind.CREATE): store.save_daily_record,
        (EntityType.DAILY_RECORD, OperationKind.UPDATE): store.save_daily_record,
        (EntityType.DAILY_RECORD, OperationKind.DELETE): delete_daily_record,
        (EntityType.DAY_DATA, OperationKind.CREATE): store.save_day_data,
        (EntityType.DAY_DATA, OperationKind.UPDATE): store.save_day_data,
        (EntityType.DAY_DATA, OperationKind.DELETE): delete_day_data,
        (EntityType.SETTINGS, OperationKind.CREATE): store.update_settings,
        (EntityType.SETTINGS, OperationKind.UPDATE): store.update_settings,
    }


@dataclass
class DrainReport:
    completed: List[str] = field(default_factory=list)
    retried: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: bool = False
    error: Optional[str] = None

    @property
    def attempts(self) -> int:
        return len(self.completed) + len(self.retried) + len(self.failed)

    def extend(self, other: "DrainReport") -> None:
        self.completed.extend(other.completed)
        self.retried.extend(other.retried)
        self.failed.extend(other.failed)
        self.error = other.error or self.error


class SyncProcessor:
    """Applies queued operations to the store with bounded retry.

    Only one drain runs at a time; extra triggers while one is in flight are
    no-ops. Each pass attempts every queued operation at most once, including
    ones enqueued mid-pass, which bounds the pass even when all of them fail.
    """

    def __init__(
        self,
        queue: SyncQueue,
        handlers: Mapping[HandlerKey, Handler],
        *,
        is_online: Callable[[], bool] = lambda: True,
    ) -> None:
        self.queue = queue
        self._handlers = dict(handlers)
        self._is_online = is_online
        self._draining = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._paused = 0
        self._in_flight: set[str] = set()
        self._drain_task: Optional[asyncio.Task] = None
        self.last_drain: Optional[datetime] = None
        self.results: ObserverRegistry[SyncOperation] = ObserverRegistry("sync")
        self.logger = get_logger("sync")

    # ------------------------------------------------------------------
    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def online(self) -> bool:
        try:
            return bool(self._is_online())
        except Exception:
            self.logger.exception("Online check failed")
            return False

    async def enqueue(self, op: SyncOperation) -> SyncOperation:
        queued = await asyncio.to_thread(self.queue.enqueue, op)
        self.logger.info("Queued %s %s (%s)", queued.kind.value, queued.entity_type.value, queued.id)
        self.schedule_drain()
        return queued

    def schedule_drain(self) -> Optional[asyncio.Task]:
        """Start a background drain unless one is running or there is nothing to do."""
        if self._drain_task is not None and not self._drain_task.done():
            return self._drain_task
        if self._draining or self._paused or not self.online or self.queue.count() == 0:
            return None
        self._drain_task = asyncio.get_running_loop().create_task(self.drain(), name="sync-drain")
        return self._drain_task

    async def drain(self) -> DrainReport:
        report = DrainReport()
        if self._draining or self._paused or not self.online:
            report.skipped = True
            return report
        if self.queue.count() == 0:
            return report

        self._draining = True
        self._idle.clear()
        attempted: set[str] = set()
        self.logger.info("Draining %d queued operation(s)", self.queue.count())
        try:
            while self.online and not self._paused:
                # Operations enqueued during the pass are picked up too; a
                # requeued failure waits for the next pass.
                next_id = next((i for i in self.queue.ids() if i not in attempted), None)
                if next_id is None:
                    break
                attempted.add(next_id)
                await self._process(next_id, report)
        except Exception as exc:
            # Queue persistence failed; leave the rest for the next drain.
            self.logger.exception("Drain aborted")
            report.error = str(exc)
        finally:
            self._draining = False
            self._idle.set()
            self.last_drain = utc_now()
        self.logger.info(
            "Drain finished: %d completed, %d retried, %d failed, %d remaining",
            len(report.completed),
            len(report.retried),
            len(report.failed),
            self.queue.count(),
        )
        return report

    async def drain_until_settled(self, max_passes: int = SYNC.drain_max_passes) -> DrainReport:
        """Run passes until the queue is empty, offline, or ``max_passes`` is reached.

        A background drain already in progress is waited for rather than
        reported as skipped.
        """
        total = DrainReport()
        for _ in range(max(1, max_passes)):
            if self._draining and not self._paused:
                await self._idle.wait()
            if self.queue.count() == 0 or not self.online:
                break
            report = await self.drain()
            total.extend(report)
            if report.skipped or report.error:
                total.skipped = report.skipped
                break
        return total

    async def clear(self) -> int:
        removed = await asyncio.to_thread(self.queue.clear)
        self.logger.warning("Sync queue cleared by user (%d operation(s) discarded)", removed)
        return removed

    @asynccontextmanager
    async def paused(self) -> AsyncIterator[None]:
        """Hold off drains for the body; waits for an apply already running to finish."""
        self._paused += 1
        try:
            await self._idle.wait()
            yield
        finally:
            self._paused -= 1

    def status(self) -> dict:
        return {
            "queueSize": self.queue.count(),
            "draining": self._draining,
            "lastDrainAt": self.last_drain,
        }

    # ------------------------------------------------------------------
    async def _apply(self, op: SyncOperation) -> None:
        handler = self._handlers.get((op.entity_type, op.kind))
        if handler is None:
            raise UnsupportedOperationError(
                f"Unsupported operation {op.kind.value} on {op.entity_type.value}"
            )
        if inspect.iscoroutinefunction(handler):
            await handler(dict(op.payload))
        else:
            await asyncio.to_thread(handler, dict(op.payload))

    async def _process(self, op_id: str, report: DrainReport) -> None:
        if op_id in self._in_flight:
            return
        self._in_flight.add(op_id)
        try:
            op = await asyncio.to_thread(self.queue.mark_processing, op_id)
            try:
                await self._apply(op)
            except Exception as exc:
                await self._on_failure(op, exc, report)
            else:
                await self._on_success(op, report)
        finally:
            self._in_flight.discard(op_id)

    async def _on_success(self, op: SyncOperation, report: DrainReport) -> None:
        try:
            done = await asyncio.to_thread(self.queue.complete, op.id)
        except KeyError:
            self.logger.info("Operation %s was cleared while it was being applied", op.id)
            return
        report.completed.append(done.id)
        self.logger.info("Applied %s %s (%s)", done.kind.value, done.entity_type.value, done.id)
        self.results.emit(done)

    async def _on_failure(self, op: SyncOperation, exc: Exception, report: DrainReport) -> None:
        try:
            updated = await asyncio.to_thread(self.queue.record_failure, op.id, str(exc) or type(exc).__name__)
        except KeyError:
            self.logger.info("Operation %s was cleared while it was being applied", op.id)
            return
        if updated.status == OperationStatus.FAILED:
            report.failed.append(updated.id)
            self.logger.error(
                "Giving up on %s %s (%s) after %d attempt(s): %s",
                updated.kind.value,
                updated.entity_type.value,
                updated.id,
                updated.retries,
                updated.last_error,
            )
            self.results.emit(updated)
        else:
            report.retried.append(updated.id)
            self.logger.warning(
                "Apply of %s %s (%s) failed, attempt %d/%d: %s",
                updated.kind.value,
                updated.entity_type.value,
                updated.id,
                updated.retries,
                updated.max_retries,
                updated.last_error,
            )


__all__ = ["DrainReport", "SyncProcessor", "build_store_handlers"]
