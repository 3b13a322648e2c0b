import flet as ft


def open_alert_dialog(page: ft.Page, *, title: str, content: ft.Control, actions: list[ft.Control]):
    dlg = ft.AlertDialog(
        modal=True,
        title=ft.Text(title),
        content=content,
        actions=actions,
        actions_alignment=ft.MainAxisAlignment.END,
    )
    page.dialog = dlg
    dlg.open = True
    page.update()
    return dlg


def close_alert_dialog(page: ft.Page):
    if page.dialog:
        page.dialog.open = False
        page.update()


def confirm(page: ft.Page, *, title: str, message: str, confirm_label: str, on_confirm):
    """Two-button confirmation; ``on_confirm`` runs after the dialog closes."""

    def _cancel(_):
        close_alert_dialog(page)

    def _accept(e):
        close_alert_dialog(page)
        on_confirm(e)

    return open_alert_dialog(
        page,
        title=title,
        content=ft.Text(message),
        actions=[
            ft.TextButton("Cancel", on_click=_cancel),
            ft.FilledButton(confirm_label, on_click=_accept),
        ],
    )


def show_snack(page: ft.Page, message: str):
    page.snack_bar = ft.SnackBar(ft.Text(message))
    page.snack_bar.open = True
    page.update()
