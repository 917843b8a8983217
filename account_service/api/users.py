"""Users API endpoints: account lifecycle, profile, channel, and history."""

import shutil
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from starlette.concurrency import run_in_threadpool

from account_service.api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_current_user,
    get_session_manager,
)
from account_service.config import get_settings
from account_service.models.account import Account, ChannelView, TokenPair, WatchedVideo
from account_service.models.requests import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshRequest,
    TokenResponse,
    UpdateAccountRequest,
)
from account_service.services.session_service import SessionManager

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _set_token_cookies(response: Response, tokens: TokenPair) -> None:
    """Deliver both tokens as httponly cookies."""
    settings = get_settings()
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=settings.refresh_token_expire_days * 86400,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def _clear_token_cookies(response: Response) -> None:
    settings = get_settings()
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.cookie_secure, samesite="lax")


def _copy_to_temp(file: UploadFile) -> str:
    with tempfile.NamedTemporaryFile(delete=False, suffix=Path(file.filename).suffix) as tmp:
        shutil.copyfileobj(file.file, tmp)
    return tmp.name


async def _stash_upload(file: Optional[UploadFile]) -> Optional[str]:
    """Copy an uploaded file to a local temp path for the media uploader."""
    if file is None or not file.filename:
        return None
    return await run_in_threadpool(_copy_to_temp, file)


def _discard(*paths: Optional[str]) -> None:
    for path in paths:
        if path:
            Path(path).unlink(missing_ok=True)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    username: str = Form(""),
    email: str = Form(""),
    full_name: str = Form("", alias="fullName"),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    manager: SessionManager = Depends(get_session_manager),
) -> Account:
    """Register a new account with an avatar and optional cover image.

    Returns:
        The created account (password and refresh token withheld)

    Raises:
        ValidationError 400: Blank field or missing avatar
        ConflictError 409: Username or email already registered
        UploadError 400: Media host rejected the avatar (a rejected cover
            image is dropped and the account is created without one)
    """
    avatar_path = await _stash_upload(avatar)
    cover_path = await _stash_upload(cover_image)

    try:
        await manager.check_registration(username, email, full_name, password, avatar_path)
        avatar_url = await manager.upload_image(avatar_path)
        cover_url = await manager.upload_cover_image(cover_path)
    finally:
        # the uploader removes files it handled; this covers ones it never reached
        _discard(avatar_path, cover_path)

    return await manager.register(
        username=username,
        email=email,
        full_name=full_name,
        password=password,
        avatar=avatar_url,
        cover_image=cover_url,
    )


@router.post("/login")
async def login(
    request: LoginRequest,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
) -> LoginResponse:
    """Login with username or email and password.

    Tokens are returned in the body and also set as httponly cookies.

    Raises:
        NotFoundError 404: No such account
        AuthError 401: Wrong password
    """
    result = await manager.login(
        password=request.password,
        username=request.username,
        email=request.email,
    )
    _set_token_cookies(response, result.tokens)

    return LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_in=manager.issuer.access_expires_in,
        user=result.account,
    )


@router.post("/logout")
async def logout(
    response: Response,
    current_user: Account = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> MessageResponse:
    """Revoke the stored refresh token and clear the token cookies."""
    await manager.logout(current_user.id)
    _clear_token_cookies(response)
    return MessageResponse(message="User logged out")


@router.post("/refresh-token")
async def refresh_token(
    http_request: Request,
    response: Response,
    request: Optional[RefreshRequest] = None,
    manager: SessionManager = Depends(get_session_manager),
) -> TokenResponse:
    """Rotate the refresh token and issue a new access token.

    The refresh token is read from the refreshToken cookie, falling back to
    the request body.

    Raises:
        AuthError 401: Missing, invalid, expired, or already-rotated token
    """
    token = http_request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not token and request is not None:
        token = request.refresh_token

    tokens = await manager.refresh(token)
    _set_token_cookies(response, tokens)

    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=manager.issuer.access_expires_in,
    )


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: Account = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> MessageResponse:
    """Change the current user's password."""
    await manager.change_password(current_user.id, request.old_password, request.new_password)
    return MessageResponse(message="Password changed successfully")


@router.get("/current-user")
async def current_user(current_user: Account = Depends(get_current_user)) -> Account:
    """Get the authenticated account."""
    return current_user


@router.patch("/update-account")
async def update_account(
    request: UpdateAccountRequest,
    current_user: Account = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> Account:
    """Replace the full name and/or email of the current user."""
    return await manager.update_account(
        current_user.id,
        full_name=request.full_name,
        email=request.email,
    )


@router.patch("/avatar")
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: Account = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> Account:
    """Upload and set a new avatar."""
    path = await _stash_upload(avatar)
    try:
        return await manager.update_avatar(current_user.id, path)
    finally:
        _discard(path)


@router.patch("/cover-image")
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    current_user: Account = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> Account:
    """Upload and set a new cover image."""
    path = await _stash_upload(cover_image)
    try:
        return await manager.update_cover_image(current_user.id, path)
    finally:
        _discard(path)


@router.get("/c/{username}")
async def channel_profile(
    username: str,
    current_user: Account = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> ChannelView:
    """Channel profile with subscriber counts, as seen by the current user."""
    return await manager.get_channel_profile(current_user.id, username)


@router.get("/history")
async def watch_history(
    current_user: Account = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> list[WatchedVideo]:
    """Videos in the current user's watch history, oldest entry first."""
    return await manager.get_watch_history(current_user.id)
