"""
API request and response models for UserVault REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format: JSON keys are camelCase (userName, accessToken, ...). Field
names stay snake_case in Python; the alias generator does the mapping and
populate_by_name lets tests and handlers construct models with either form.

Every response body is wrapped in the same envelope:
  success: {statusCode, data, message, success: true}
  error:   {statusCode, data: null, message, success: false, errors: [...]}
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User

# Character cap on password fields. bcrypt's real limit is 72 bytes; multibyte
# input under this cap is checked with auth.passwords.password_too_long().
MAX_PASSWORD_LENGTH = 72


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ApiResponse(_CamelModel):
    """Success envelope."""

    status_code: int
    data: Any = None
    message: str = "Success"
    success: bool = True


class ErrorResponse(_CamelModel):
    """Error envelope returned on every 4xx/5xx response."""

    status_code: int
    data: None = None
    message: str
    success: bool = False
    errors: list[Any] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(_CamelModel):
    """Request body for POST /api/v1/users/login.

    Either email or userName identifies the account. Presence and format are
    checked in the handler so the error message matches the failing rule.
    No whitespace stripping here: it would alter passwords.
    """

    email: Optional[str] = None
    user_name: Optional[str] = None
    password: str = Field(default="", max_length=MAX_PASSWORD_LENGTH)


class RefreshRequest(_CamelModel):
    """Optional body for POST /api/v1/users/refresh-token (cookie takes precedence)."""

    refresh_token: Optional[str] = None


class ChangePasswordRequest(_CamelModel):
    """Request body for POST /api/v1/users/change-password."""

    old_password: str = Field(default="", max_length=MAX_PASSWORD_LENGTH)
    new_password: str = Field(default="", max_length=MAX_PASSWORD_LENGTH)
    conf_password: str = Field(default="", max_length=MAX_PASSWORD_LENGTH)


class UpdateAccountRequest(_CamelModel):
    """Request body for PATCH /api/v1/users/update-account."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    full_name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)


# ---------------------------------------------------------------------------
# Response payloads (the "data" part of the envelope)
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    """Public view of a user. Never carries the password hash or refresh token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    user_name: str
    email: str
    full_name: str
    avatar: str
    cover_image: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build the public view from a domain User (Factory Method)."""
        return cls(
            id=user.id,
            user_name=user.user_name,
            email=user.email,
            full_name=user.full_name,
            avatar=user.avatar,
            cover_image=user.cover_image,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class TokenPairResponse(_CamelModel):
    access_token: str
    refresh_token: str


class LoginResponse(_CamelModel):
    user: UserResponse
    access_token: str
    refresh_token: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
