from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from idrac_gateway.db.migrate import apply_migrations


def _table_names(db_path: Path) -> set[str]:
    with sqlite3.connect(db_path) as conn:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name ASC;"
        ).fetchall()
    return {r[0] for r in rows}


def _table_columns(db_path: Path, table: str) -> set[str]:
    with sqlite3.connect(db_path) as conn:
        rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    return {r[1] for r in rows}


def test_migrations_blank_to_latest(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "dir" / "idrac.db"

    apply_migrations(db_path)
    apply_migrations(db_path)  # idempotent

    assert db_path.is_file()

    tables = _table_names(db_path)
    assert "schema_migrations" in tables
    assert "users" in tables

    assert _table_columns(db_path, "users") == {"id", "username", "password_hash", "created_at"}

    with sqlite3.connect(db_path) as conn:
        applied = [r[0] for r in conn.execute("SELECT name FROM schema_migrations;")]
    assert applied == ["0001_users"]


def test_users_username_is_unique(tmp_path: Path) -> None:
    db_path = tmp_path / "idrac.db"
    apply_migrations(db_path)

    with sqlite3.connect(db_path) as conn:
        conn.execute("INSERT INTO users (username, password_hash) VALUES ('a', 'x');")
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO users (username, password_hash) VALUES ('a', 'y');")
