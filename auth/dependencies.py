"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. "accessToken" cookie -- set by POST /login and /refresh-token.
  2. Authorization: Bearer <token> header -- the mobile client.

The request moves through two states: unauthenticated (initial) and
authenticated (terminal). Any failure on the way -- no token, bad signature,
expired token, user gone -- is terminal too and fails closed with
Unauthorized. There is no retry; the client is expected to refresh or log in
again.

The resolved identity is returned as a typed AuthContext rather than being
attached to the request object. Route handlers declare what they need:

    @router.get("/current-user")
    def current_user(user: User = Depends(get_current_user)): ...

    @router.post("/logout")
    def logout(ctx: AuthContext = Depends(get_auth_context)): ...

Layer rule: no imports from api/ or media/. This module may import from
fastapi (Request) because it is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import Unauthorized
from auth.models import AuthContext, User
from auth.store import UserStore
from auth.tokens import ACCESS_COOKIE, TokenService


def extract_token(request: Request) -> str | None:
    """Return the raw access token from the cookie or Bearer header, or None."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_auth_context(request: Request) -> AuthContext:
    """Authenticate the request. Raises Unauthorized on any failure."""
    token = extract_token(request)
    if not token:
        raise Unauthorized("Unauthorized request.")

    token_service: TokenService = request.app.state.token_service
    user_store: UserStore = request.app.state.user_store

    # InvalidToken / ExpiredToken are Unauthorized subclasses; let them through
    # so the envelope carries the precise code.
    user_id = token_service.verify_access_token(token)
    try:
        user = user_store.get_by_id(user_id)
    except SQLAlchemyError as exc:
        raise Unauthorized("Unable to resolve the token's user.") from exc
    if user is None:
        raise Unauthorized("Invalid access token.")
    return AuthContext(user=user.public(), token=token)


def get_current_user(ctx: AuthContext = Depends(get_auth_context)) -> User:
    """Require authentication and return the public User."""
    return ctx.user
