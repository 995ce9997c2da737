"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for UserVault happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Explicit hand-off: the Settings instance is built once at startup and
      placed on app.state. TokenService, UserStore, and the media host receive
      it (or values from it) through their constructors instead of reading
      module-level globals.

  @model_validator(mode="after"): cross-field validation after all fields are
      resolved. Implements the DEBUG-conditional token secret policy: dev mode
      generates secrets with a warning, production refuses to start without
      them.

Security notes:
  [M6] Token secrets shorter than 32 chars are rejected outright.

  [M7] In production mode (DEBUG not set or false), a missing secret is a hard
       startup failure.

  [M8] Access and refresh secrets must differ. A shared secret would let a
       refresh token verify as an access token if the type claim check were
       ever removed.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or media/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("uservault.config")

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `access_token_secret` reads from ACCESS_TOKEN_SECRET.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = f"sqlite:///{_PROJECT_ROOT / 'auth' / 'uservault.db'}"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the "not configured" sentinel. The validator either
    # generates a dev secret or raises, so callers never see "".
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    access_token_expire_seconds: int = 24 * 60 * 60
    refresh_token_expire_seconds: int = 10 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # Cookies and HTTP surface
    # ------------------------------------------------------------------

    secure_cookies: bool = True
    cookie_samesite: str = "lax"
    # Comma-separated lists; "*" allows everything.
    cors_origins: str = "*"
    allowed_hosts: str = "*"

    # ------------------------------------------------------------------
    # Media host
    # ------------------------------------------------------------------

    media_backend: str = "local"  # "local" or "cloudinary"
    media_root: str = str(_PROJECT_ROOT / "public" / "media")
    media_url_prefix: str = "/media"
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""

    upload_temp_dir: str = str(_PROJECT_ROOT / "public" / "temp")
    max_upload_bytes: int = 5 * 1024 * 1024

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def allowed_host_list(self) -> list[str]:
        return [h.strip() for h in self.allowed_hosts.split(",") if h.strip()]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Enforce the token secret policy [M6][M7][M8].

        Dev mode (DEBUG=true): auto-generate missing secrets with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.

        Both modes: reject secrets shorter than 32 characters and reject
            identical access/refresh secrets.
        """
        for field in ("access_token_secret", "refresh_token_secret"):
            if not getattr(self, field):
                if not self.debug:
                    raise ValueError(
                        f"{field.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                setattr(self, field, secrets.token_hex(32))
                logger.warning("WARNING: Using auto-generated %s. Sessions will not persist across restarts.", field.upper())
            if len(getattr(self, field)) < 32:
                raise ValueError(f"{field.upper()} must be at least 32 characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        return self

    @model_validator(mode="after")
    def validate_media_backend(self) -> "Settings":
        """Reject unknown media backends and incomplete Cloudinary credentials."""
        if self.media_backend not in ("local", "cloudinary"):
            raise ValueError("MEDIA_BACKEND must be 'local' or 'cloudinary'.")
        if self.media_backend == "cloudinary":
            missing = [
                name
                for name in ("cloudinary_cloud_name", "cloudinary_api_key", "cloudinary_api_secret")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"Cloudinary media backend requires: {', '.join(n.upper() for n in missing)}")
        return self

    @model_validator(mode="after")
    def validate_token_lifetimes(self) -> "Settings":
        if self.access_token_expire_seconds <= 0 or self.refresh_token_expire_seconds <= 0:
            raise ValueError("Token lifetimes must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Called once by the application lifespan (and by the CLI); the resulting
    object is then handed to collaborators explicitly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
