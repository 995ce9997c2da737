"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

bcrypt.checkpw compares in constant time, so verify_password() does not leak
how much of a guess was correct.

Layer rule: stdlib + bcrypt only. Imported by auth/store.py (hash on save)
and by the route layer (verify on login / change-password).
"""

from __future__ import annotations

import bcrypt

# bcrypt's input limit is in bytes, not characters. "\u00e9" * 40 is 40 characters
# but 80 bytes of UTF-8.
MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError above MAX_PASSWORD_BYTES. Older bcrypt releases truncate
    silently and newer ones raise, so the limit is enforced here for both.
    Route handlers check password_too_long() first and answer 400.
    """
    if password_too_long(plain):
        raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes.")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    if not hashed or password_too_long(plain):
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the DB -- treat as a mismatch rather than a 500.
        return False
