# ui/app_shell.py
from __future__ import annotations

import flet as ft

from core.log import read_log_tail
from core.settings import UI
from services.app import DaycareApp
from services.connectivity import ConnectionStatus
from services.tentative import TentativeChange

from .dialogs import show_snack
from .pages.settings import SettingsPage


class AppShell:
    def __init__(self, page: ft.Page, app: DaycareApp | None = None):
        self.page = page
        self.app = app or DaycareApp()

        self.page.title = UI.app_title
        self.page.horizontal_alignment = ft.CrossAxisAlignment.STRETCH
        self.page.vertical_alignment = ft.MainAxisAlignment.START

        self._settings = SettingsPage(self)
        self.connection_icon = ft.Icon(ft.Icons.CLOUD_OFF, tooltip="Offline")
        self.content = ft.Container(self._settings.view, expand=True)
        self.root = ft.Column(
            controls=[
                ft.Row([ft.Text(UI.app_title, size=18, weight=ft.FontWeight.W_600), self.connection_icon],
                       alignment=ft.MainAxisAlignment.SPACE_BETWEEN),
                ft.Divider(height=1),
                self.content,
            ],
            expand=True,
            spacing=0,
        )

        self._status_handle: int | None = None
        self._failure_handle: int | None = None

    # ---------- monitoring ----------
    def _on_status(self, status: ConnectionStatus):
        self.connection_icon.name = ft.Icons.CLOUD_DONE if status.online else ft.Icons.CLOUD_OFF
        self.connection_icon.tooltip = "Online" if status.online else "Offline"
        self._settings.refresh_status()
        self.page.update()

    def _on_sync_failure(self, change: TentativeChange):
        show_snack(
            self.page,
            f"A change to {change.collection} could not be saved and was undone: {change.error}",
        )

    def read_log(self) -> str:
        return read_log_tail(UI.log_tail_lines)

    # ---------- lifecycle ----------
    async def start(self):
        self._status_handle = self.app.monitor.subscribe(self._on_status)
        self._failure_handle = self.app.state.failures.subscribe(self._on_sync_failure)
        await self.app.start()
        self._settings.load_form()
        self._settings.refresh_status()
        await self._settings.refresh_backups()

    async def shutdown(self):
        if self._status_handle is not None:
            self.app.monitor.unsubscribe(self._status_handle)
            self._status_handle = None
        if self._failure_handle is not None:
            self.app.state.failures.unsubscribe(self._failure_handle)
            self._failure_handle = None
        await self.app.stop()

    def mount(self):
        self.page.controls.clear()
        self.page.add(self.root)
        self.page.update()
        self.page.on_disconnect = lambda _: self.page.run_task(self.shutdown)
        self.page.run_task(self.start)
