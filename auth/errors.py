"""
auth/errors.py -- Domain exception taxonomy for UserVault.

Every error raised by the store wrappers, the token service, and the route
handlers is one of these classes. Each carries the HTTP status and a
machine-readable code so the single exception handler in api/main.py can
render the error envelope without a lookup table.

Token failures (InvalidToken, ExpiredToken, TokenReuseDetected) subclass
Unauthorized: callers that only care about "not authenticated" catch the base
class, tests can assert on the precise cause.

Layer rule: no imports from fastapi, api/, or media/.
"""

from __future__ import annotations


class UserVaultError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Something went wrong."

    def __init__(self, message: str | None = None, errors: list | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class BadRequest(UserVaultError):
    status_code = 400
    code = "bad_request"
    default_message = "Bad request."


class Unauthorized(UserVaultError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized request."


class InvalidToken(Unauthorized):
    code = "invalid_token"
    default_message = "Invalid token."


class ExpiredToken(Unauthorized):
    code = "expired_token"
    default_message = "Token has expired."


class TokenReuseDetected(Unauthorized):
    """A refresh token that no longer matches the stored one was presented.

    Either it was already rotated by a newer login/refresh or it was cleared
    by logout.
    """

    code = "token_reuse"
    default_message = "Refresh token is expired or used."


class NotFound(UserVaultError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class Conflict(UserVaultError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists."


class InternalError(UserVaultError):
    status_code = 500
    code = "internal_error"


class PersistenceError(InternalError):
    code = "persistence_error"
    default_message = "Something went wrong while saving to the store."
