from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from pathlib import Path

from idrac_gateway.db import connect
from idrac_gateway.db.migrations import MIGRATIONS
from idrac_gateway.errors import StorageError

logger = logging.getLogger(__name__)


def ensure_db_parent_dir(db_path: Path) -> None:
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Cannot create database directory {db_path.parent}: {exc}") from exc


def apply_migrations(db_path: Path) -> None:
    """Apply all known migrations to a SQLite DB.

    - Safe to run multiple times.
    - Works from blank DB -> latest.
    """

    ensure_db_parent_dir(db_path)

    try:
        with closing(connect(db_path)) as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS schema_migrations ("
                " name TEXT PRIMARY KEY,"
                " applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"
                ");"
            )

            applied = {
                row[0]
                for row in conn.execute(
                    "SELECT name FROM schema_migrations ORDER BY name ASC;"
                ).fetchall()
            }

            for name, sql in MIGRATIONS:
                if name in applied:
                    continue

                conn.executescript(sql)
                conn.execute(
                    "INSERT OR IGNORE INTO schema_migrations (name) VALUES (?);", (name,)
                )
                logger.info("Applied migration %s to %s", name, db_path)
    except sqlite3.Error as exc:
        raise StorageError(f"Database error: {exc}") from exc
