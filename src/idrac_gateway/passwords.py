"""Password hashing with bcrypt."""

from __future__ import annotations

from functools import lru_cache

import bcrypt

from idrac_gateway.errors import PasswordHashError

# Fixed work factor (bcrypt's default cost).
BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes of input.
MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        raise PasswordHashError(f"Password longer than {MAX_PASSWORD_BYTES} bytes")
    return raw


def hash_password(password: str) -> str:
    """Hash a password using a fresh salt."""
    raw = _encode(password)
    try:
        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")
    except ValueError as exc:
        raise PasswordHashError(f"Failed to hash password: {exc}") from exc


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of a password against a stored bcrypt hash.

    A stored hash bcrypt cannot parse is a `PasswordHashError`, not a mismatch.
    Over-long passwords were never accepted by `hash_password`, so they cannot match.
    """
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        burn_verification()
        return False
    try:
        return bcrypt.checkpw(raw, password_hash.encode("utf-8"))
    except ValueError as exc:
        raise PasswordHashError(f"Failed to verify password: {exc}") from exc


@lru_cache(maxsize=1)
def _dummy_hash(rounds: int) -> bytes:
    return bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=rounds))


def burn_verification() -> None:
    """Spend the same bcrypt work as a real check, for lookups that missed."""
    bcrypt.checkpw(b"not-the-password", _dummy_hash(BCRYPT_ROUNDS))
