"""Composition root: builds the services and owns their start/stop lifecycle."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from core.log import get_logger
from core.settings import CONNECTIVITY, EXPORT_DIR
from services.backup_service import BackupResult, BackupService, RestoreResult
from services.connectivity import ConnectivityMonitor, Probe
from services.daycare import DaycareService
from services.sync_processor import DrainReport, SyncProcessor, build_store_handlers
from services.sync_queue import SyncQueue
from services.tentative import TentativeState
from storage.db import get_engine, init_db, session_factory_for
from storage.store import DaycareStore


class DaycareApp:
    def __init__(
        self,
        *,
        engine=None,
        config_path: Optional[Path] = None,
        probe: Optional[Probe] = None,
        poll_interval: float = CONNECTIVITY.poll_interval_sec,
    ) -> None:
        self.engine = engine if engine is not None else get_engine()
        factory = session_factory_for(self.engine)
        self.store = DaycareStore(factory)
        self.queue = SyncQueue(factory)
        self.processor = SyncProcessor(
            self.queue,
            build_store_handlers(self.store),
            is_online=lambda: self.monitor.online,
        )
        self.backup = BackupService(
            self.store,
            config_path=config_path,
            is_online=lambda: self.monitor.online,
        )
        self.monitor = ConnectivityMonitor(
            probe,
            poll_interval=poll_interval,
            processor=self.processor,
            backup=self.backup,
        )
        self.state = TentativeState()
        self.daycare = DaycareService(self.processor, self.state, self.store)
        self._results_handle: Optional[int] = None
        self._started = False
        self.logger = get_logger("app")

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        await asyncio.to_thread(init_db, self.engine)
        restored = await asyncio.to_thread(self.queue.load)
        if restored:
            self.logger.info("Resuming %d pending operation(s) from last session", restored)
        self._results_handle = self.processor.results.subscribe(self.state.on_result)
        await self.daycare.load()
        await self.monitor.start()
        self._started = True

    async def stop(self) -> None:
        if not self._started:
            return
        self.monitor.stop()
        if self._results_handle is not None:
            self.processor.results.unsubscribe(self._results_handle)
            self._results_handle = None
        self._started = False
        self.logger.info("Application services stopped")

    async def restore_from_backup(self, path: str | Path) -> RestoreResult:
        """Restore, then drop queued operations that targeted the replaced data.

        Drains are held off for the whole restore so no apply can write into
        the freshly replaced store.
        """
        async with self.processor.paused():
            result = await self.backup.restore_from_backup(path)
            if result.success:
                await self._discard_queue()
        return result

    async def clear_queue(self) -> int:
        """Drop queued changes and put the view back to what the store holds."""
        async with self.processor.paused():
            return await self._discard_queue()

    async def _discard_queue(self) -> int:
        removed = await self.processor.clear()
        self.state.discard_pending()
        await self.daycare.load()
        return removed

    async def sync_now(self) -> DrainReport:
        """Manual sync: check the connection, then drain until every queued change is settled."""
        await self.monitor.check_now()
        return await self.processor.drain_until_settled()

    async def export_backup(self, directory: str | Path = EXPORT_DIR) -> BackupResult:
        """One-off snapshot into a local folder, created on first use."""
        target = Path(directory)
        try:
            await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            self.logger.error("Cannot create export folder %s: %s", target, exc)
            return BackupResult(False, f"Export failed: cannot create {target}")
        return await self.backup.export_to(target)


__all__ = ["DaycareApp"]
