"""Password hashing utilities."""

from __future__ import annotations

import bcrypt


def hash_password(password: str) -> str:
    """Hash a plaintext password with a fresh bcrypt salt.

    Args:
        password: Plaintext password (at most 72 bytes once UTF-8 encoded).

    Returns:
        The bcrypt hash as a UTF-8 string, safe to store in the database.
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash.

    Returns:
        True if the password matches, False otherwise (including a
        malformed stored hash).
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False
