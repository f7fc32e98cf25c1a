"""SQLite migration runner for runtime state tables."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

LOGGER = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "sql"


def _ensure_ledger(cursor: sqlite3.Cursor) -> None:
    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          migration_id TEXT PRIMARY KEY,
          applied_at INTEGER NOT NULL
        )
        """
    )


def apply_migrations(
    database_path: Path, *, migrations_dir: Path = MIGRATIONS_DIR
) -> list[str]:
    """Apply pending SQL migrations in file-name order; return the ids applied."""
    database_path.parent.mkdir(parents=True, exist_ok=True)
    applied: list[str] = []
    connection = sqlite3.connect(str(database_path))
    try:
        cursor = connection.cursor()
        _ensure_ledger(cursor)
        for migration_file in sorted(migrations_dir.glob("*.sql")):
            migration_id = migration_file.name
            already_applied = cursor.execute(
                "SELECT 1 FROM schema_migrations WHERE migration_id = ?",
                (migration_id,),
            ).fetchone()
            if already_applied:
                continue
            cursor.executescript(migration_file.read_text(encoding="utf-8"))
            cursor.execute(
                "INSERT INTO schema_migrations(migration_id, applied_at) VALUES (?, strftime('%s','now'))",
                (migration_id,),
            )
            applied.append(migration_id)
        connection.commit()
    finally:
        connection.close()
    if applied:
        LOGGER.info("Applied SQLite migrations: %s", ", ".join(applied))
    return applied


def applied_migrations(database_path: Path) -> list[str]:
    """Return migration ids recorded in the ledger, oldest first."""
    connection = sqlite3.connect(str(database_path))
    try:
        cursor = connection.cursor()
        _ensure_ledger(cursor)
        rows = cursor.execute(
            "SELECT migration_id FROM schema_migrations ORDER BY migration_id"
        ).fetchall()
    finally:
        connection.close()
    return [str(row[0]) for row in rows]
