"""
tests/conftest.py -- Shared test fixtures for UserVault tests.

This module provides:
  - make_store(): isolated in-memory UserStore
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: TestClient plus a pre-registered user and its access token
  - user_store / settings / token_service: function-scoped unit-test fixtures
  - register_user() / login_user(): request helpers shared by the route tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any api/auth/core import:
  DEBUG=true               get_settings() generates token secrets instead of raising
  SECURE_COOKIES=false     httpx will not send Secure cookies to http://testserver
  RATE_LIMIT_ENABLED=false the suite logs in far more than 10 times a minute
  MEDIA_ROOT / UPLOAD_TEMP_DIR point at a temp dir, never at the project tree
"""

from __future__ import annotations

import os
import tempfile
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

_TEST_TMP = tempfile.mkdtemp(prefix="uservault-tests-")

# CRITICAL: Set these before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECURE_COOKIES", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("MEDIA_ROOT", os.path.join(_TEST_TMP, "media"))
os.environ.setdefault("UPLOAD_TEMP_DIR", os.path.join(_TEST_TMP, "temp"))
os.environ.setdefault("DATABASE_URL", "sqlite:///file:test_default?mode=memory&cache=shared&uri=true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from media.local import LocalMediaHost

# Smallest thing that looks like a PNG. The local media host does not decode images.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

USERS_URL = "/api/v1/users"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_store(db_suffix: str | None = None) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state. Random when omitted.
    """
    suffix = db_suffix or uuid.uuid4().hex
    return UserStore(db_url=f"sqlite:///file:test_auth_{suffix}?mode=memory&cache=shared&uri=true")


def add_user(store: UserStore, user_name: str = "alice", password: str = "secret123", **fields) -> int:
    """Insert a user directly through the store and return its id."""
    user = User(
        user_name=user_name,
        email=fields.pop("email", f"{user_name}@example.com"),
        full_name=fields.pop("full_name", user_name.title()),
        avatar=fields.pop("avatar", "/media/seed.png"),
        **fields,
    )
    return store.create_user(user, password)


def _patch_lifespan(user_store: UserStore, token_service: TokenService, media_root: Path):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test collaborators into app.state so TestClient routes
    see an isolated DB and a media directory under the temp dir.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.token_service = token_service
        app.state.media_host = LocalMediaHost(media_root, settings.media_url_prefix)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


def register_user(
    client: TestClient,
    user_name: str,
    password: str = "secret123",
    email: str | None = None,
    full_name: str | None = None,
    avatar: bool = True,
    cover: bool = False,
):
    """POST a multipart registration and return the response."""
    data = {
        "fullName": full_name if full_name is not None else user_name.title(),
        "userName": user_name,
        "email": email if email is not None else f"{user_name}@example.com",
        "password": password,
    }
    files = {}
    if avatar:
        files["avatar"] = ("avatar.png", PNG_BYTES, "image/png")
    if cover:
        files["coverImage"] = ("cover.png", PNG_BYTES, "image/png")
    return client.post(f"{USERS_URL}/register", data=data, files=files or None)


def login_user(client: TestClient, user_name: str, password: str = "secret123"):
    return client.post(f"{USERS_URL}/login", json={"userName": user_name, "password": password})


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Production-mode settings with explicit, distinct secrets."""
    return Settings(
        debug=False,
        access_token_secret="a" * 40,
        refresh_token_secret="r" * 40,
        secure_cookies=True,
    )


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = make_store()
    yield store
    store.close()


@pytest.fixture
def token_service(settings: Settings, user_store: UserStore) -> TokenService:
    return TokenService(settings, user_store)


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use an isolated in-memory store.
    A user "testadmin" exists before the client starts; token is a valid
    access token for it, for use in Authorization headers.
    """
    user_store = make_store(f"api_{uuid.uuid4().hex[:8]}")
    token_service = TokenService(get_settings(), user_store)
    media_root = Path(tempfile.mkdtemp(prefix="media-", dir=_TEST_TMP))

    uid = add_user(user_store, "testadmin", "testpass123")
    token = token_service.issue_token_pair(uid).access_token

    app.router.lifespan_context = _patch_lifespan(user_store, token_service, media_root)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, uid

    user_store.close()
