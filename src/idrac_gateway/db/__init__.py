from __future__ import annotations

import sqlite3
from pathlib import Path

from idrac_gateway.config import GatewayConfig

# Seconds a connection waits on the SQLite write lock before failing.
BUSY_TIMEOUT_S = 10.0


def resolve_db_path(config: GatewayConfig) -> Path:
    """Resolve the credential database path from config (DATABASE_PATH)."""

    return Path(config.database.path).expanduser()


def connect(db_path: Path) -> sqlite3.Connection:
    """Open a connection in autocommit mode.

    Callers that write open their own `BEGIN IMMEDIATE` transaction so that
    concurrent writers are serialized on the SQLite write lock.
    """

    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_S, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn
