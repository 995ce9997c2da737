"""
auth/tokens.py -- Access/refresh token lifecycle and cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with
       distinct secrets and carry distinct TTLs. Both carry a "type" claim
       and a random "jti", so the same user getting two pairs in the same
       second still gets two different refresh tokens.

  Rotation: the refresh token is persisted on the user record. Every
       issue_token_pair() call overwrites it, which is the only revocation
       mechanism -- an older refresh token simply stops matching. Presenting a
       stale token raises TokenReuseDetected.

  Comparison of the presented refresh token against the stored one uses
       hmac.compare_digest on UTF-8 bytes so response time does not reveal a
       matching prefix. compare_digest rejects non-ASCII str arguments.
       python-jose skips stray non-base64 characters in the signature, so a
       valid token with one appended still reaches this comparison.

  Concurrency: no locking. Two refreshes racing with the same valid token can
       both pass verification; whichever writes last wins and the other
       caller's new pair is silently invalidated. Accepted behavior.

  Config: TokenService receives the Settings object through its constructor
       -- no module-level secret lookups.

Layer rule: no imports from api/ or media/. Import from core/ is allowed.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import ExpiredToken, InvalidToken, PersistenceError, TokenReuseDetected
from auth.models import TokenPair, User
from core.config import Settings

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("uservault.auth.tokens")

_ALGORITHM = "HS256"

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues, verifies, and rotates access/refresh token pairs.

    Usage:
        tokens = TokenService(settings, store)
        pair = tokens.issue_token_pair(user_id)
        user_id = tokens.verify_access_token(pair.access_token)
        new_pair = tokens.verify_and_rotate_refresh_token(pair.refresh_token)
        tokens.revoke_refresh_token(user_id)

    clock is injectable so tests can mint tokens that are already expired.
    """

    def __init__(self, settings: Settings, store: UserStore, clock: Callable[[], datetime] | None = None) -> None:
        self._settings = settings
        self._store = store
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def _encode(self, claims: dict, secret: str, ttl_seconds: int) -> str:
        now = self._clock()
        payload = {
            **claims,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
        }
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    def _create_access_token(self, user: User) -> str:
        return self._encode(
            {
                "sub": str(user.id),
                "type": "access",
                "user_name": user.user_name,
                "email": user.email,
                "full_name": user.full_name,
            },
            self._settings.access_token_secret,
            self._settings.access_token_expire_seconds,
        )

    def _create_refresh_token(self, user: User) -> str:
        return self._encode(
            {"sub": str(user.id), "type": "refresh"},
            self._settings.refresh_token_secret,
            self._settings.refresh_token_expire_seconds,
        )

    @staticmethod
    def _decode(token: str, secret: str, expected_type: str) -> int:
        """Verify signature, expiry, and type; return the user id from "sub"."""
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except JWTError as exc:
            raise InvalidToken() from exc
        if payload.get("type") != expected_type:
            raise InvalidToken(f"Expected a {expected_type} token.")
        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken("Token subject is missing or malformed.") from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def issue_token_pair(self, user_id: int) -> TokenPair:
        """Mint a new pair and persist the refresh token (rotation point).

        Raises PersistenceError if the user cannot be loaded or the store
        write fails. The pair is only returned after the write commits, so a
        failure never hands out a refresh token the store does not know about.
        """
        try:
            user = self._store.get_by_id(user_id)
            if user is None:
                raise PersistenceError("Something went wrong while generating tokens.")
            pair = TokenPair(
                access_token=self._create_access_token(user),
                refresh_token=self._create_refresh_token(user),
            )
            if not self._store.set_refresh_token(user_id, pair.refresh_token):
                raise PersistenceError("Something went wrong while generating tokens.")
        except SQLAlchemyError as exc:
            logger.exception("Refresh token write failed for user_id=%s", user_id)
            raise PersistenceError("Something went wrong while generating tokens.") from exc
        return pair

    def verify_access_token(self, token: str) -> int:
        """Return the user id encoded in a valid access token.

        Pure CPU work -- never touches the store. Raises ExpiredToken or
        InvalidToken.
        """
        return self._decode(token, self._settings.access_token_secret, "access")

    def verify_and_rotate_refresh_token(self, token: str) -> TokenPair:
        """Exchange a live refresh token for a brand-new pair.

        The presented token must verify against the refresh secret AND equal
        the value currently stored on the user. Anything else is either
        forged (InvalidToken), stale (ExpiredToken), or already rotated /
        revoked (TokenReuseDetected).
        """
        user_id = self._decode(token, self._settings.refresh_token_secret, "refresh")
        try:
            user = self._store.get_by_id(user_id)
        except SQLAlchemyError as exc:
            raise PersistenceError() from exc
        if user is None:
            raise InvalidToken("Invalid refresh token.")
        if user.refresh_token is None or not hmac.compare_digest(user.refresh_token.encode(), token.encode()):
            logger.warning("Refresh token reuse detected for user_id=%s", user_id)
            raise TokenReuseDetected()
        return self.issue_token_pair(user_id)

    def revoke_refresh_token(self, user_id: int) -> None:
        """Clear the stored refresh token so no outstanding one can be used."""
        try:
            self._store.set_refresh_token(user_id, None)
        except SQLAlchemyError as exc:
            raise PersistenceError() from exc


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_token_cookies(response, pair: TokenPair, settings: Settings) -> None:
    """Write both tokens as httpOnly cookies on the response.

    httponly=True: JS cannot read the cookies (XSS mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true (the default).
    max_age: matches each token's TTL so cookie and token expire together.
    """
    response.set_cookie(
        ACCESS_COOKIE,
        value=pair.access_token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
        max_age=settings.access_token_expire_seconds,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=pair.refresh_token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
        max_age=settings.refresh_token_expire_seconds,
    )


def clear_token_cookies(response, settings: Settings) -> None:
    """Expire both token cookies. Attributes must match set_token_cookies()."""
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            httponly=True,
            secure=settings.secure_cookies,
            samesite=settings.cookie_samesite,
        )
