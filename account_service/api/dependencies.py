"""FastAPI dependencies for wiring the session manager and authentication."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from account_service.config import get_settings
from account_service.database import get_pool
from account_service.models.account import Account
from account_service.services.account_store import AccountStore
from account_service.services.channel_store import ChannelStore
from account_service.services.media_service import CloudinaryUploader
from account_service.services.password_hasher import PasswordHasher
from account_service.services.session_service import SessionManager
from account_service.services.token_service import TokenIssuer

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

# auto_error off: the token may arrive in a cookie instead of the header
bearer_scheme = HTTPBearer(auto_error=False)


async def get_session_manager(request: Request) -> SessionManager:
    """Build a SessionManager over the lifespan-owned pool and uploader."""
    settings = get_settings()
    pool = await get_pool()
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

    uploader = getattr(request.app.state, "uploader", None)
    if uploader is None:
        uploader = CloudinaryUploader.from_settings(settings)
        request.app.state.uploader = uploader

    return SessionManager(
        store=AccountStore(pool, hasher),
        channels=ChannelStore(pool),
        hasher=hasher,
        issuer=TokenIssuer.from_settings(settings),
        uploader=uploader,
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    manager: SessionManager = Depends(get_session_manager),
) -> Account:
    """Resolve the caller from the accessToken cookie or a Bearer header.

    Raises:
        AuthError: If no token is presented, it fails verification, or the
            account no longer exists
    """
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token and credentials is not None:
        token = credentials.credentials
    return await manager.authenticate(token)
