"""Online/offline tracking through periodic reachability probes."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Sequence

import httpx

from core.log import get_logger
from core.settings import CONNECTIVITY
from datetime_utils import ensure_utc, utc_now
from services.events import ObserverRegistry
from services.scheduler import PeriodicTask

if TYPE_CHECKING:
    from services.backup_service import BackupEvent, BackupService
    from services.sync_processor import SyncProcessor


Probe = Callable[[], Awaitable[bool]]


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ConnectionStatus:
    online: bool = False
    last_check: Optional[datetime] = None
    last_sync: Optional[datetime] = None
    sync_status: SyncStatus = SyncStatus.IDLE
    error_message: Optional[str] = None


class HttpProbe:
    """HEAD request against each URL in turn; any HTTP response means reachable."""

    def __init__(
        self,
        urls: Sequence[str] = CONNECTIVITY.probe_urls,
        timeout: float = CONNECTIVITY.probe_timeout_sec,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.urls = tuple(urls)
        self.timeout = timeout
        self._transport = transport
        self.logger = get_logger("connectivity")

    async def __call__(self) -> bool:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=False,
            transport=self._transport,
        ) as client:
            for url in self.urls:
                try:
                    await client.head(url, headers={"Cache-Control": "no-cache"})
                    return True
                except httpx.HTTPError as exc:
                    self.logger.debug("Probe %s failed: %s", url, exc)
        return False


def format_last_sync(last_sync: Optional[datetime], now: Optional[datetime] = None) -> str:
    if last_sync is None:
        return "Never"
    current = ensure_utc(now) or utc_now()
    minutes = int((current - ensure_utc(last_sync)).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} minute{'' if minutes == 1 else 's'} ago"
    if hours < 24:
        return f"{hours} hour{'' if hours == 1 else 's'} ago"
    return f"{days} day{'' if days == 1 else 's'} ago"


class ConnectivityMonitor:
    """Best-effort online flag with change notifications.

    Offline -> Online schedules one queue drain and one backup attempt.
    Online -> Offline only flips the flag; work already running finishes.
    While online, each poll also retries a non-empty queue.
    """

    def __init__(
        self,
        probe: Optional[Probe] = None,
        *,
        poll_interval: float = CONNECTIVITY.poll_interval_sec,
        processor: Optional["SyncProcessor"] = None,
        backup: Optional["BackupService"] = None,
    ) -> None:
        self._probe = probe or HttpProbe()
        self.poll_interval = poll_interval
        self.processor = processor
        self.backup = backup
        self._status = ConnectionStatus()
        self._poll: Optional[PeriodicTask] = None
        self._backup_handle: Optional[int] = None
        self._background: set[asyncio.Task] = set()
        self._checking = False
        self.listeners: ObserverRegistry[ConnectionStatus] = ObserverRegistry("connectivity")
        self.logger = get_logger("connectivity")

    # ------------------------------------------------------------------
    @property
    def online(self) -> bool:
        return self._status.online

    @property
    def running(self) -> bool:
        return self._poll is not None and self._poll.running

    def get_status(self) -> ConnectionStatus:
        return replace(self._status)

    def subscribe(self, callback: Callable[[ConnectionStatus], None]) -> int:
        return self.listeners.subscribe(callback)

    def unsubscribe(self, handle: int) -> bool:
        return self.listeners.unsubscribe(handle)

    def format_last_sync(self, now: Optional[datetime] = None) -> str:
        return format_last_sync(self._status.last_sync, now)

    # ------------------------------------------------------------------
    async def start(self) -> None:
        if self.running:
            return
        await self.check_now()
        self._poll = PeriodicTask("connectivity-poll", self.poll_interval, self._tick).start()
        if self.backup is not None:
            if self._backup_handle is None:
                self._backup_handle = self.backup.events.subscribe(self._on_backup_event)
            self.backup.start_schedule(startup=True)
        self.logger.info("Connectivity monitor started (online=%s)", self.online)

    def stop(self) -> None:
        if self._poll is not None:
            self._poll.stop()
            self._poll = None
        if self.backup is not None:
            self.backup.stop_schedule()
            if self._backup_handle is not None:
                self.backup.events.unsubscribe(self._backup_handle)
                self._backup_handle = None
        self.logger.info("Connectivity monitor stopped")

    async def check_now(self) -> bool:
        """Probe once; returns True when this check moved Offline -> Online."""
        if self._checking:
            return False
        self._checking = True
        try:
            try:
                reachable = bool(await self._probe())
            except Exception as exc:
                self.logger.debug("Probe raised, treating as offline: %s", exc)
                reachable = False
        finally:
            self._checking = False

        was_online = self._status.online
        self._status.online = reachable
        self._status.last_check = utc_now()
        came_online = reachable and not was_online

        if came_online:
            self.logger.info("Connection restored")
            self._on_reconnect()
        elif was_online and not reachable:
            self.logger.info("Connection lost")

        self.listeners.emit(self.get_status())
        return came_online

    async def _tick(self) -> None:
        came_online = await self.check_now()
        if self.online and not came_online and self.processor is not None:
            self.processor.schedule_drain()

    def _on_reconnect(self) -> None:
        if self.processor is not None and self.processor.queue.count() > 0:
            self.processor.schedule_drain()
        if self.backup is not None:
            self._spawn(self.backup.perform_backup(), "reconnect-backup")

    def _spawn(self, coro: Awaitable[object], name: str) -> None:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    def _on_backup_event(self, event: "BackupEvent") -> None:
        if event.result is None:
            self._status.sync_status = SyncStatus.SYNCING
        elif event.result.success:
            self._status.sync_status = SyncStatus.SUCCESS
            self._status.last_sync = event.at
            self._status.error_message = None
        else:
            self._status.sync_status = SyncStatus.ERROR
            self._status.error_message = event.result.message
        self.listeners.emit(self.get_status())


__all__ = ["ConnectionStatus", "ConnectivityMonitor", "HttpProbe", "SyncStatus", "format_last_sync"]
