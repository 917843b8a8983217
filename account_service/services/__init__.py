"""Services package exports."""

from account_service.services.account_store import AccountRepository, AccountStore
from account_service.services.channel_store import ChannelRepository, ChannelStore
from account_service.services.logging_service import configure_logging, get_logger
from account_service.services.media_service import CloudinaryUploader, MediaUploader, UploadResult
from account_service.services.password_hasher import PasswordHasher
from account_service.services.session_service import SessionManager
from account_service.services.token_service import TokenIssuer, TokenKind

__all__ = [
    "AccountRepository",
    "AccountStore",
    "ChannelRepository",
    "ChannelStore",
    "CloudinaryUploader",
    "MediaUploader",
    "PasswordHasher",
    "SessionManager",
    "TokenIssuer",
    "TokenKind",
    "UploadResult",
    "configure_logging",
    "get_logger",
]
