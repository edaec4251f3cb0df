from __future__ import annotations

MIGRATIONS: list[tuple[str, str]] = [
    (
        "0001_users",
        """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
""",
    )
]
