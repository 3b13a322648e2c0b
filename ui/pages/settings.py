# ui/pages/settings.py
from datetime import timezone
import flet as ft

from core.errors import DaycareError
from core.settings import BACKUP, EXPORT_DIR
from ui.dialogs import confirm, show_snack


class SettingsPage:
    def __init__(self, shell):
        self.shell = shell

        self.status_connection = ft.Text()
        self.status_queue = ft.Text()
        self.last_backup = ft.Text()
        self.backup_state = ft.Text()

        self.enabled_switch = ft.Switch(label="Automatic cloud backup")
        self.directory_field = ft.TextField(label="Cloud folder", expand=True)
        self.max_backups_field = ft.TextField(
            label=f"Keep backups ({BACKUP.min_backups}-{BACKUP.max_backups})", width=200
        )
        self.interval_field = ft.TextField(
            label=f"Every N minutes ({BACKUP.min_interval_minutes}-{BACKUP.max_interval_minutes})",
            width=220,
        )

        self.save_btn = ft.ElevatedButton("Save", icon=ft.Icons.SAVE, on_click=self.save_config)
        self.test_btn = ft.OutlinedButton("Test folder", icon=ft.Icons.FOLDER_OPEN, on_click=self.test_folder)
        self.backup_btn = ft.ElevatedButton("Back up now", icon=ft.Icons.CLOUD_UPLOAD, on_click=self.backup_now)
        self.export_btn = ft.OutlinedButton("Export", icon=ft.Icons.DOWNLOAD, on_click=self.export_now)
        self.sync_btn = ft.OutlinedButton("Sync queue now", icon=ft.Icons.SYNC, on_click=self.sync_now)
        self.clear_btn = ft.TextButton("Discard queued changes", icon=ft.Icons.DELETE_SWEEP, on_click=self.clear_queue)
        self.refresh_log_btn = ft.TextButton("Refresh log", icon=ft.Icons.ARTICLE, on_click=self.refresh_log)

        self.backups_list = ft.Column(spacing=4)
        self.log_view = ft.Text("", selectable=True)

        content = ft.Column(
            controls=[
                ft.Text("Sync & backup", size=24, weight=ft.FontWeight.BOLD),
                self.status_connection,
                self.status_queue,
                self.last_backup,
                self.backup_state,
                ft.Row([self.backup_btn, self.export_btn, self.sync_btn, self.clear_btn], spacing=12),
                ft.Divider(),
                self.enabled_switch,
                ft.Row([self.directory_field, self.test_btn], spacing=12),
                ft.Row([self.max_backups_field, self.interval_field, self.save_btn], spacing=12),
                ft.Divider(),
                ft.Text("Backups", size=18, weight=ft.FontWeight.W_600),
                self.backups_list,
                ft.Column([
                    ft.Text("Log", size=18, weight=ft.FontWeight.W_600),
                    ft.Container(self.log_view, height=200, padding=10),
                    self.refresh_log_btn,
                ], spacing=8),
            ],
            expand=True,
            spacing=16,
            scroll=ft.ScrollMode.AUTO,
        )

        self.view = ft.Container(content=content, expand=True, padding=20)

    @property
    def page(self) -> ft.Page:
        return self.shell.page

    @property
    def app(self):
        return self.shell.app

    def _format_dt(self, value) -> str:
        if not value:
            return "-"
        if getattr(value, "tzinfo", None) is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")

    def load_form(self):
        cfg = self.app.backup.config
        self.enabled_switch.value = cfg.enabled
        self.directory_field.value = cfg.cloud_directory
        self.max_backups_field.value = str(cfg.max_backups)
        self.interval_field.value = str(cfg.sync_interval_minutes)

    def refresh_status(self):
        status = self.app.monitor.get_status()
        state = "online" if status.online else "offline"
        self.status_connection.value = (
            f"Connection: {state} (checked {self._format_dt(status.last_check)})"
        )
        queue = self.app.processor.status()
        draining = " (syncing)" if queue["draining"] else ""
        self.status_queue.value = f"Pending changes: {queue['queueSize']}{draining}"
        self.last_backup.value = "Last backup: " + self.app.monitor.format_last_sync()
        self.backup_state.value = f"Backup status: {status.sync_status.value}"
        if status.error_message:
            self.backup_state.value += f" ({status.error_message})"
        self.log_view.value = self.shell.read_log()

    async def refresh_backups(self):
        files = await self.app.backup.list_backups()
        self.backups_list.controls = [
            ft.Row(
                [
                    ft.Text(item.filename, expand=True),
                    ft.Text(self._format_dt(item.modified_time)),
                    ft.Text(f"{item.size_bytes / 1024:.1f} KB"),
                    ft.TextButton("Restore", on_click=lambda e, p=item.filepath: self.ask_restore(p)),
                ],
                spacing=12,
            )
            for item in files
        ] or [ft.Text("No backups found in the cloud folder.")]
        self.page.update()

    # ---------- handlers ----------
    def save_config(self, _):
        async def _save():
            try:
                await self.app.backup.update_config(
                    enabled=bool(self.enabled_switch.value),
                    cloud_directory=(self.directory_field.value or "").strip(),
                    max_backups=int(self.max_backups_field.value or 0),
                    sync_interval_minutes=int(self.interval_field.value or 0),
                )
            except ValueError:
                show_snack(self.page, "Backup count and interval must be whole numbers")
                return
            except DaycareError as e:
                show_snack(self.page, e.message)
                return
            show_snack(self.page, "Backup settings saved")
            await self.refresh_backups()

        self.page.run_task(_save)

    def test_folder(self, _):
        async def _test():
            ok, message = await self.app.backup.validate_directory(self.directory_field.value or "")
            show_snack(self.page, message)

        self.page.run_task(_test)

    def backup_now(self, _):
        async def _backup():
            result = await self.app.backup.perform_backup(require_online=False)
            show_snack(self.page, result.message)
            self.refresh_status()
            await self.refresh_backups()

        self.page.run_task(_backup)

    def export_now(self, _):
        async def _export():
            result = await self.app.export_backup(EXPORT_DIR)
            if result.success:
                show_snack(self.page, f"Exported to {result.path}")
            else:
                show_snack(self.page, result.message)

        self.page.run_task(_export)

    def sync_now(self, _):
        async def _sync():
            report = await self.app.sync_now()
            if report.skipped:
                show_snack(self.page, "Sync skipped: offline or already running")
            else:
                show_snack(self.page, f"Applied {len(report.completed)} change(s)")
            self.refresh_status()
            self.page.update()

        self.page.run_task(_sync)

    def clear_queue(self, _):
        def _do(_e):
            async def _clear():
                removed = await self.app.clear_queue()
                show_snack(self.page, f"Discarded {removed} queued change(s)")
                self.refresh_status()
                self.page.update()

            self.page.run_task(_clear)

        confirm(
            self.page,
            title="Discard queued changes?",
            message="Changes that have not been saved yet will be lost.",
            confirm_label="Discard",
            on_confirm=_do,
        )

    def ask_restore(self, path):
        def _do(_e):
            async def _restore():
                result = await self.app.restore_from_backup(path)
                show_snack(self.page, result.message)
                self.refresh_status()
                self.page.update()

            self.page.run_task(_restore)

        confirm(
            self.page,
            title="Restore this backup?",
            message=f"All current data will be replaced with {path.name}. This cannot be undone.",
            confirm_label="Restore",
            on_confirm=_do,
        )

    def refresh_log(self, _):
        self.log_view.value = self.shell.read_log()
        self.page.update()
