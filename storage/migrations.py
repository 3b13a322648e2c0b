"""Ad-hoc database migrations for the daycare database."""

from __future__ import annotations

from sqlalchemy import text


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def ensure_dog_columns(conn) -> None:
    # Databases created before compliance tracking lack these.
    columns = {
        "consent_last_signed": "TEXT",
        "photo_url": "TEXT",
        "is_active": "INTEGER NOT NULL DEFAULT 1",
    }
    for name, ddl_type in columns.items():
        if not _column_exists(conn, "dog", name):
            conn.execute(text(f"ALTER TABLE dog ADD COLUMN {name} {ddl_type}"))


def ensure_sync_operation_table(conn) -> None:
    for name, ddl_type in {"last_error": "TEXT", "position": "INTEGER NOT NULL DEFAULT 0"}.items():
        if not _column_exists(conn, "sync_operation", name):
            conn.execute(text(f"ALTER TABLE sync_operation ADD COLUMN {name} {ddl_type}"))
    conn.execute(
        text(
            """
            CREATE INDEX IF NOT EXISTS ix_sync_operation_position
            ON sync_operation (position)
            """
        )
    )


def reset_interrupted_operations(conn) -> None:
    # An apply that was running when the process died never finished.
    conn.execute(
        text(
            """
            UPDATE sync_operation
            SET status = 'pending'
            WHERE status = 'processing'
            """
        )
    )


def run_all(engine) -> None:
    with engine.begin() as conn:
        ensure_dog_columns(conn)
        ensure_sync_operation_table(conn)
        reset_interrupted_operations(conn)


__all__ = ["run_all"]
