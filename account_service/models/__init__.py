"""Models package exports."""

from account_service.models.account import (
    Account,
    AccountRecord,
    ChannelStats,
    ChannelView,
    LoginResult,
    TokenPair,
    VideoOwner,
    WatchedVideo,
)
from account_service.models.requests import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshRequest,
    TokenResponse,
    UpdateAccountRequest,
)

__all__ = [
    "Account",
    "AccountRecord",
    "ChangePasswordRequest",
    "ChannelStats",
    "ChannelView",
    "LoginRequest",
    "LoginResponse",
    "LoginResult",
    "MessageResponse",
    "RefreshRequest",
    "TokenPair",
    "TokenResponse",
    "UpdateAccountRequest",
    "VideoOwner",
    "WatchedVideo",
]
