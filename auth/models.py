"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond projection).
Dataclasses own domain shape; the store and routes do the work.

Layer rule: no imports from api/, media/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass
class User:
    """A registered account.

    user_name is always stored lowercase and email trimmed + lowercase -- the
    store normalizes on write so lookups can compare exactly.

    hashed_password and refresh_token are sensitive. They are populated on
    records loaded for credential checks and token rotation, and stripped via
    public() before a User is attached to a request or serialized.

    refresh_token holds the single live refresh token for this user (None
    after logout or before the first login).
    """

    user_name: str
    email: str
    full_name: str
    id: int | None = None
    hashed_password: str | None = None
    avatar: str = ""
    cover_image: str = ""
    refresh_token: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def public(self) -> "User":
        """Return a copy with the password hash and refresh token removed."""
        return replace(self, hashed_password=None, refresh_token=None)


@dataclass(frozen=True)
class TokenPair:
    """An access/refresh token pair issued together."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved by the auth dependency for one request.

    user is always the public projection (no hash, no refresh token). token is
    the raw access token that authenticated the request.
    """

    user: User
    token: str
