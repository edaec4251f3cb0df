from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from dataclasses import dataclass
from pathlib import Path

from idrac_gateway.db import connect
from idrac_gateway.db.migrate import apply_migrations
from idrac_gateway.errors import (
    DuplicateUsernameError,
    RegistrationClosedError,
    StorageError,
)
from idrac_gateway.passwords import burn_verification, hash_password, verify_password

logger = logging.getLogger(__name__)

BOOTSTRAP_USERNAME = "admin"
BOOTSTRAP_PASSWORD = ""


@dataclass(frozen=True)
class UserRow:
    id: int
    username: str
    created_at: str | None


def _user_from_db_row(row: sqlite3.Row) -> UserRow:
    return UserRow(id=row["id"], username=row["username"], created_at=row["created_at"])


@contextmanager
def _read(db_path: Path) -> Iterator[sqlite3.Connection]:
    try:
        with closing(connect(db_path)) as conn:
            yield conn
    except sqlite3.Error as exc:
        raise StorageError(f"Database error: {exc}") from exc


@contextmanager
def _write_transaction(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Run a block under SQLite's write lock, committing only if it succeeds."""

    with _read(db_path) as conn:
        conn.execute("BEGIN IMMEDIATE;")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK;")
            raise
        conn.execute("COMMIT;")


def _count_users(conn: sqlite3.Connection) -> int:
    return int(conn.execute("SELECT COUNT(*) FROM users;").fetchone()[0])


def _insert_user(conn: sqlite3.Connection, username: str, password_hash: str) -> int:
    try:
        cur = conn.execute(
            "INSERT INTO users (username, password_hash) VALUES (?, ?);",
            (username, password_hash),
        )
    except sqlite3.IntegrityError as exc:
        raise DuplicateUsernameError(username) from exc
    return int(cur.lastrowid)


def _check_username(username: str) -> None:
    if not username or not username.strip():
        raise ValueError("username must not be empty")


def initialize_store(db_path: Path) -> Path:
    """Create the database (and its directory) if needed and bootstrap it.

    Idempotent. When the users table is empty a single `admin` account with an
    empty password is inserted; the emptiness check and the insert share one
    write transaction, so the bootstrap account is created at most once.
    """

    apply_migrations(db_path)

    with _write_transaction(db_path) as conn:
        if _count_users(conn) == 0:
            logger.info("No users found, creating default admin account")
            _insert_user(conn, BOOTSTRAP_USERNAME, hash_password(BOOTSTRAP_PASSWORD))
            logger.info("Default admin account created (username: %s)", BOOTSTRAP_USERNAME)

    logger.info("Database initialized at %s", db_path)
    return db_path


def has_users(db_path: Path) -> bool:
    with _read(db_path) as conn:
        return _count_users(conn) > 0


def create_user(db_path: Path, *, username: str, password: str) -> int:
    """Insert a new account and return its id.

    Raises `DuplicateUsernameError` when the username is taken.
    """

    _check_username(username)
    password_hash = hash_password(password)

    with _write_transaction(db_path) as conn:
        user_id = _insert_user(conn, username, password_hash)

    logger.info("User created: %s", username)
    return user_id


def create_first_user(db_path: Path, *, username: str, password: str) -> int:
    """Create an account only if the store holds none yet.

    Of any number of concurrent callers against an empty store, exactly one
    succeeds; the rest get `RegistrationClosedError`.
    """

    _check_username(username)
    password_hash = hash_password(password)

    with _write_transaction(db_path) as conn:
        if _count_users(conn) > 0:
            raise RegistrationClosedError()
        user_id = _insert_user(conn, username, password_hash)

    logger.info("User created: %s", username)
    return user_id


def verify_user(db_path: Path, *, username: str, password: str) -> UserRow | None:
    """Return the user when the password matches, else None.

    Unknown usernames and wrong passwords are indistinguishable to the caller.
    """

    with _read(db_path) as conn:
        row = conn.execute(
            "SELECT id, username, password_hash, created_at FROM users WHERE username = ?;",
            (username,),
        ).fetchone()

    if row is None:
        burn_verification()
        return None

    if not verify_password(password, row["password_hash"]):
        return None

    logger.info("User authenticated: %s", username)
    return _user_from_db_row(row)


def get_user_by_id(db_path: Path, *, user_id: int) -> UserRow | None:
    with _read(db_path) as conn:
        row = conn.execute(
            "SELECT id, username, created_at FROM users WHERE id = ?;",
            (user_id,),
        ).fetchone()
    return _user_from_db_row(row) if row is not None else None


def list_usernames(db_path: Path) -> list[str]:
    with _read(db_path) as conn:
        rows = conn.execute("SELECT username FROM users ORDER BY id ASC;").fetchall()
    return [r["username"] for r in rows]
