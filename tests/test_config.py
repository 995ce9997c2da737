"""
tests/test_config.py -- Settings validation rules in core/config.py.

debug is always passed explicitly: conftest sets DEBUG=true in the
environment for the app, and these tests need both modes.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

_ACCESS = "a" * 32
_REFRESH = "r" * 32


def test_production_requires_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ACCESS_TOKEN_SECRET", raising=False)
    monkeypatch.delenv("REFRESH_TOKEN_SECRET", raising=False)
    with pytest.raises(ValidationError, match="ACCESS_TOKEN_SECRET is required"):
        Settings(debug=False)


def test_debug_generates_distinct_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ACCESS_TOKEN_SECRET", raising=False)
    monkeypatch.delenv("REFRESH_TOKEN_SECRET", raising=False)
    settings = Settings(debug=True)
    assert len(settings.access_token_secret) >= 32
    assert len(settings.refresh_token_secret) >= 32
    assert settings.access_token_secret != settings.refresh_token_secret


def test_short_secret_rejected() -> None:
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(debug=False, access_token_secret="short", refresh_token_secret=_REFRESH)


def test_identical_secrets_rejected() -> None:
    with pytest.raises(ValidationError, match="must differ"):
        Settings(debug=False, access_token_secret=_ACCESS, refresh_token_secret=_ACCESS)


def test_default_lifetimes() -> None:
    settings = Settings(debug=False, access_token_secret=_ACCESS, refresh_token_secret=_REFRESH)
    assert settings.access_token_expire_seconds == 86400
    assert settings.refresh_token_expire_seconds == 864000


def test_non_positive_lifetime_rejected() -> None:
    with pytest.raises(ValidationError, match="positive"):
        Settings(debug=False, access_token_secret=_ACCESS, refresh_token_secret=_REFRESH, access_token_expire_seconds=0)


def test_unknown_media_backend_rejected() -> None:
    with pytest.raises(ValidationError, match="MEDIA_BACKEND"):
        Settings(debug=False, access_token_secret=_ACCESS, refresh_token_secret=_REFRESH, media_backend="s3")


def test_cloudinary_requires_credentials() -> None:
    with pytest.raises(ValidationError, match="CLOUDINARY_API_SECRET"):
        Settings(
            debug=False,
            access_token_secret=_ACCESS,
            refresh_token_secret=_REFRESH,
            media_backend="cloudinary",
            cloudinary_cloud_name="demo",
            cloudinary_api_key="123",
        )


def test_comma_separated_lists() -> None:
    settings = Settings(
        debug=False,
        access_token_secret=_ACCESS,
        refresh_token_secret=_REFRESH,
        cors_origins="https://app.example.com, https://admin.example.com ,",
        allowed_hosts="api.example.com",
    )
    assert settings.cors_origin_list == ["https://app.example.com", "https://admin.example.com"]
    assert settings.allowed_host_list == ["api.example.com"]
