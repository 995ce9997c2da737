"""
api/routes/v1/users.py -- Account and session REST endpoints.

Routes (prefix /api/v1/users):
  POST  /register         -- multipart sign-up with avatar; 201
  POST  /login            -- email or userName + password; sets token cookies
  POST  /logout           -- clears stored refresh token and cookies (requires auth)
  POST  /refresh-token    -- rotate refresh token (cookie or JSON body)
  POST  /change-password  -- verify old password, store new one (requires auth)
  GET   /current-user     -- public profile of the caller (requires auth)
  PATCH /update-account   -- change fullName / email (requires auth)
  PATCH /avatar           -- replace avatar image (requires auth)
  PATCH /cover-image      -- replace cover image (requires auth)

Errors are raised as auth.errors exceptions; api/main.py renders them into
the error envelope. Handlers never build error responses themselves.

Security:
  [H2] /register, /login and /refresh-token are rate-limited per IP.
  [M5] Cache-Control: no-store on every response that carries tokens.
  Token cookies are httpOnly; Secure and SameSite come from Settings.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter, login_rate_limit
from api.models import (
    MAX_PASSWORD_LENGTH,
    ApiResponse,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    TokenPairResponse,
    UpdateAccountRequest,
    UserResponse,
)
from auth.dependencies import get_auth_context, get_current_user
from auth.errors import BadRequest, Conflict, InternalError, NotFound, Unauthorized, UserVaultError
from auth.models import AuthContext, User
from auth.passwords import MAX_PASSWORD_BYTES, password_too_long, verify_password
from auth.store import UserStore
from auth.tokens import REFRESH_COOKIE, TokenService, clear_token_cookies, set_token_cookies
from core.config import Settings
from media.host import MediaHost, UploadResult
from media.uploads import UploadRejected, discard_temp, has_file, save_temp_upload

logger = logging.getLogger("uservault.api.users")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Auth policy:
# - POST  /register, /login, /refresh-token: public (refresh is token-bearing)
# - everything else: requires auth via get_auth_context / get_current_user
router = APIRouter(prefix="/users")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _respond(status_code: int, data, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(status_code=status_code, data=data, message=message).model_dump(by_alias=True),
    )


def _user_payload(user: User | None) -> dict:
    if user is None:
        raise InternalError("User not found after write.")
    return UserResponse.from_user(user).model_dump(by_alias=True)


def _valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


async def _stage_and_upload(upload: UploadFile, settings: Settings, media_host: MediaHost) -> Optional[UploadResult]:
    """Stage the multipart file on disk, hand it to the media host, then discard it."""
    try:
        path = await save_temp_upload(upload, Path(settings.upload_temp_dir), settings.max_upload_bytes)
    except UploadRejected as exc:
        raise BadRequest(str(exc)) from exc
    try:
        return await asyncio.to_thread(media_host.upload, path)
    finally:
        discard_temp(path)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", status_code=201)
@limiter.limit(login_rate_limit)
async def register(
    request: Request,
    full_name: str = Form("", alias="fullName"),
    user_name: str = Form("", alias="userName"),
    email: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
) -> JSONResponse:
    """Create an account. The avatar must upload successfully before any record is written."""
    settings: Settings = request.app.state.settings
    user_store: UserStore = request.app.state.user_store
    media_host: MediaHost = request.app.state.media_host

    if any(not field.strip() for field in (full_name, user_name, email, password)):
        raise BadRequest("All fields are required.")
    if not _valid_email(email.strip()):
        raise BadRequest("Enter a valid email.")
    if len(password) > MAX_PASSWORD_LENGTH or password_too_long(password):
        raise BadRequest(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

    existing = await asyncio.to_thread(user_store.find_by_email_or_user_name, email, user_name)
    if existing is not None:
        raise Conflict("User with this email or username already exists.")

    if not has_file(avatar):
        raise BadRequest("Avatar is required.")
    avatar_res = await _stage_and_upload(avatar, settings, media_host)
    if avatar_res is None:
        raise BadRequest("Avatar upload failed.")

    uploaded = [avatar_res.url]
    cover_url = ""
    try:
        if has_file(cover_image):
            # The cover is optional; a rejected file registers without one.
            try:
                cover_res = await _stage_and_upload(cover_image, settings, media_host)
            except BadRequest as exc:
                logger.warning("Ignoring cover image at registration: %s", exc.message)
                cover_res = None
            if cover_res is not None:
                cover_url = cover_res.url
                uploaded.append(cover_url)

        new_user = User(
            user_name=user_name,
            email=email,
            full_name=full_name,
            avatar=avatar_res.url,
            cover_image=cover_url,
        )
        # bcrypt runs inside create_user -- keep it off the event loop.
        user_id = await asyncio.to_thread(user_store.create_user, new_user, password)
    except Exception as exc:
        # No record was written. Don't leave orphaned assets behind.
        for url in uploaded:
            await asyncio.to_thread(media_host.delete, url)
        if isinstance(exc, IntegrityError):
            # Lost a race with a concurrent registration.
            raise Conflict("User with this email or username already exists.") from exc
        raise

    created = await asyncio.to_thread(user_store.get_by_id, user_id)
    logger.info("Registered user_id=%s", user_id)
    return _respond(201, _user_payload(created), "User registered successfully.")


@router.post("/login")
@limiter.limit(login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Verify credentials, issue a token pair, and set both cookies.

    Unknown identifier -> 404, wrong password -> 401. The stored refresh token
    is overwritten, which ends any previous session for this user.
    """
    settings: Settings = request.app.state.settings
    user_store: UserStore = request.app.state.user_store
    token_service: TokenService = request.app.state.token_service

    email = (body.email or "").strip()
    user_name = (body.user_name or "").strip()
    if not email and not user_name:
        raise BadRequest("Credentials missing.")
    if email and not _valid_email(email):
        raise BadRequest("Email invalid.")
    if not body.password.strip():
        raise BadRequest("Password is required.")

    user = user_store.find_by_email_or_user_name(email=email, user_name=user_name)
    if user is None:
        raise NotFound("User doesn't exist.")
    if not verify_password(body.password, user.hashed_password):
        raise Unauthorized("Invalid user credentials.")

    pair = token_service.issue_token_pair(user.id)
    payload = LoginResponse(
        user=UserResponse.from_user(user),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    ).model_dump(by_alias=True)
    resp = _respond(200, payload, "User logged in successfully.")
    set_token_cookies(resp, pair, settings)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/refresh-token")
@limiter.limit(login_rate_limit)
def refresh_token(request: Request, body: Optional[RefreshRequest] = None) -> JSONResponse:
    """Exchange the current refresh token for a new pair (rotation).

    The cookie wins over the body, matching how browsers and the mobile
    client each send it. Every failure is reported as 401.
    """
    settings: Settings = request.app.state.settings
    token_service: TokenService = request.app.state.token_service

    incoming = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    if not incoming:
        raise Unauthorized("Refresh token is missing.")

    try:
        pair = token_service.verify_and_rotate_refresh_token(incoming)
    except Unauthorized:
        raise
    except UserVaultError as exc:
        raise Unauthorized("Unable to refresh the session.") from exc

    payload = TokenPairResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)
    resp = _respond(200, payload.model_dump(by_alias=True), "Access token refreshed.")
    set_token_cookies(resp, pair, settings)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/logout")
def logout(request: Request, ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    """Clear the stored refresh token and both cookies."""
    settings: Settings = request.app.state.settings
    token_service: TokenService = request.app.state.token_service

    token_service.revoke_refresh_token(ctx.user.id)
    resp = _respond(200, {}, "User logged out successfully.")
    clear_token_cookies(resp, settings)
    return resp


@router.post("/change-password")
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    """Replace the password after checking the old one against the stored hash."""
    user_store: UserStore = request.app.state.user_store

    if not body.new_password.strip():
        raise BadRequest("New password is required.")
    if body.new_password != body.conf_password:
        raise BadRequest("New password and confirm password do not match.")
    if password_too_long(body.new_password):
        raise BadRequest(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

    # ctx.user is the public projection; reload to get the hash.
    user = user_store.get_by_id(ctx.user.id)
    if user is None:
        raise Unauthorized("Invalid access token.")
    if not verify_password(body.old_password, user.hashed_password):
        raise BadRequest("Invalid old password.")

    user_store.set_password(user.id, body.new_password)
    return _respond(200, {}, "Password changed successfully.")


@router.get("/current-user")
def current_user(user: User = Depends(get_current_user)) -> JSONResponse:
    return _respond(200, _user_payload(user), "Current user fetched successfully.")


@router.patch("/update-account")
def update_account(
    request: Request,
    body: UpdateAccountRequest,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    """Update fullName and email. Both are required; email must stay unique."""
    user_store: UserStore = request.app.state.user_store

    if not body.full_name or not body.email:
        raise BadRequest("All fields are required.")
    if not _valid_email(body.email):
        raise BadRequest("Enter a valid email.")

    owner = user_store.get_by_email(body.email)
    if owner is not None and owner.id != ctx.user.id:
        raise Conflict("Email is already in use.")
    try:
        user_store.update_profile(ctx.user.id, full_name=body.full_name, email=body.email)
    except IntegrityError as exc:
        raise Conflict("Email is already in use.") from exc

    return _respond(200, _user_payload(user_store.get_by_id(ctx.user.id)), "Account details updated successfully.")


async def _replace_image(
    request: Request, ctx: AuthContext, upload: Optional[UploadFile], field: str, label: str
) -> JSONResponse:
    """Upload a new image, point the user at it, then delete the previous asset.

    A failed delete of the old asset is logged and tolerated: the user record
    already references the new URL, so the request has succeeded.
    """
    settings: Settings = request.app.state.settings
    user_store: UserStore = request.app.state.user_store
    media_host: MediaHost = request.app.state.media_host

    if not has_file(upload):
        raise BadRequest(f"{label} file is missing.")
    result = await _stage_and_upload(upload, settings, media_host)
    if result is None:
        raise BadRequest(f"Error while uploading the {label.lower()}.")

    previous = getattr(ctx.user, field)
    await asyncio.to_thread(user_store.update_profile, ctx.user.id, **{field: result.url})
    if previous:
        deleted = await asyncio.to_thread(media_host.delete, previous)
        if not deleted:
            logger.warning("Could not delete previous %s for user_id=%s", field, ctx.user.id)

    updated = await asyncio.to_thread(user_store.get_by_id, ctx.user.id)
    return _respond(200, _user_payload(updated), f"{label} updated successfully.")


@router.patch("/avatar")
async def update_avatar(
    request: Request,
    avatar: Optional[UploadFile] = File(None),
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    return await _replace_image(request, ctx, avatar, field="avatar", label="Avatar")


@router.patch("/cover-image")
async def update_cover_image(
    request: Request,
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    return await _replace_image(request, ctx, cover_image, field="cover_image", label="Cover image")
