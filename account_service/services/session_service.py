"""Session lifecycle: registration, login, refresh, logout, and profile changes."""

from typing import Optional
from uuid import UUID

import structlog

from account_service.errors import (
    AuthError,
    ConflictError,
    DuplicateError,
    NotFoundError,
    UploadError,
    ValidationError,
)
from account_service.models.account import (
    Account,
    AccountRecord,
    ChannelView,
    LoginResult,
    TokenPair,
    WatchedVideo,
)
from account_service.services.account_store import AccountRepository
from account_service.services.channel_store import ChannelRepository
from account_service.services.media_service import MediaUploader
from account_service.services.password_hasher import PasswordHasher
from account_service.services.token_service import TokenIssuer, TokenKind

logger = structlog.get_logger(__name__)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class SessionManager:
    """Orchestrates account sessions against the store and token issuer.

    A session moves Anonymous -> Authenticated on login and back on logout.
    Refresh and password changes keep it Authenticated. Each account holds a
    single active refresh token; presenting any other value fails.
    """

    def __init__(
        self,
        store: AccountRepository,
        channels: ChannelRepository,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        uploader: MediaUploader,
    ):
        self.store = store
        self.channels = channels
        self.hasher = hasher
        self.issuer = issuer
        self.uploader = uploader

    async def _require(self, account_id: UUID) -> AccountRecord:
        record = await self.store.find_by_id(account_id)
        if record is None:
            raise NotFoundError("User does not exist")
        return record

    async def _issue_tokens(self, record: AccountRecord) -> TokenPair:
        """Mint both tokens and persist the refresh token as the only valid one."""
        access_token = self.issuer.issue_access(record)
        refresh_token = self.issuer.issue_refresh(record)
        updated = await self.store.update_fields(record.id, {"refresh_token": refresh_token})
        if updated is None:
            raise NotFoundError("User does not exist")
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def check_registration(
        self,
        username: str,
        email: str,
        full_name: str,
        password: str,
        avatar: Optional[str],
    ) -> None:
        """Reject a registration before any media is uploaded.

        ``avatar`` is the local file path or hosted URL, whichever the caller
        holds at this point.

        Raises:
            ValidationError: If a required field is blank or the avatar is missing
            ConflictError: If the username or email is already registered
        """
        if any(_is_blank(v) for v in (username, email, full_name, password)):
            raise ValidationError("All fields are required")

        if await self.store.find_by_username_or_email(username, email) is not None:
            raise ConflictError("User with email or username already exists")

        if _is_blank(avatar):
            raise ValidationError("Avatar file is required")

    async def upload_cover_image(self, local_path: Optional[str]) -> Optional[str]:
        """Upload an optional cover image; a failed upload yields None."""
        try:
            return await self.upload_image(local_path)
        except UploadError:
            logger.warning("cover_image_upload_skipped")
            return None

    async def register(
        self,
        username: str,
        email: str,
        full_name: str,
        password: str,
        avatar: Optional[str],
        cover_image: Optional[str] = None,
    ) -> Account:
        """Create an account.

        Raises:
            ValidationError: If a required field is blank or the avatar is missing
            ConflictError: If the username or email is already registered
        """
        await self.check_registration(username, email, full_name, password, avatar)

        try:
            record = await self.store.create(
                {
                    "username": username,
                    "email": email,
                    "full_name": full_name,
                    "password": password,
                    "avatar": avatar,
                    "cover_image": cover_image,
                }
            )
        except DuplicateError as e:
            # lost a race with a concurrent registration
            raise ConflictError("User with email or username already exists") from e

        logger.info("account_registered", account_id=str(record.id), username=record.username)
        return record.to_public()

    async def login(
        self,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> LoginResult:
        """Authenticate with a username or email plus password.

        Raises:
            ValidationError: If neither identifier or no password is given
            NotFoundError: If no account matches
            AuthError: If the password is wrong
        """
        if _is_blank(username) and _is_blank(email):
            raise ValidationError("Username or email is required")
        if _is_blank(password):
            raise ValidationError("Password is required")

        record = await self.store.find_by_username_or_email(username, email)
        if record is None:
            raise NotFoundError("User does not exist")

        if not self.hasher.verify(password, record.password):
            logger.warning("login_failed", account_id=str(record.id))
            raise AuthError("Invalid user credentials")

        tokens = await self._issue_tokens(record)
        logger.info("account_logged_in", account_id=str(record.id), username=record.username)
        return LoginResult(account=record.to_public(), tokens=tokens)

    async def logout(self, account_id: UUID) -> None:
        """Clear the stored refresh token. Repeated calls are harmless."""
        await self.store.update_fields(account_id, {"refresh_token": None})
        logger.info("account_logged_out", account_id=str(account_id))

    async def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        """Exchange the current refresh token for a new pair (rotation).

        Raises:
            AuthError: If the token is missing, invalid, expired, or is not the
                account's current refresh token
        """
        if _is_blank(refresh_token):
            raise AuthError("Unauthorized request")

        payload = self.issuer.verify(refresh_token, TokenKind.REFRESH)

        try:
            account_id = UUID(payload["sub"])
        except ValueError:
            raise AuthError("Invalid refresh token")

        record = await self.store.find_by_id(account_id)
        if record is None:
            raise AuthError("Invalid refresh token")

        if record.refresh_token != refresh_token:
            logger.warning("refresh_token_reuse_detected", account_id=str(account_id))
            raise AuthError("Refresh token is expired or used")

        tokens = await self._issue_tokens(record)
        logger.info("refresh_token_rotated", account_id=str(account_id))
        return tokens

    async def change_password(
        self, account_id: UUID, old_password: str, new_password: str
    ) -> None:
        """Replace the password after verifying the current one.

        Existing tokens stay valid.

        Raises:
            ValidationError: If the new password is blank
            NotFoundError: If the account does not exist
            AuthError: If the old password is wrong
        """
        if _is_blank(new_password):
            raise ValidationError("New password is required")

        record = await self._require(account_id)

        if _is_blank(old_password) or not self.hasher.verify(old_password, record.password):
            logger.warning("password_change_rejected", account_id=str(account_id))
            raise AuthError("Invalid old password")

        record.password = new_password
        if await self.store.save(record) is None:
            raise NotFoundError("User does not exist")
        logger.info("password_changed", account_id=str(account_id))

    async def authenticate(self, access_token: Optional[str]) -> Account:
        """Resolve an access token to the account it was issued for.

        Raises:
            AuthError: If the token is missing, invalid, expired, or its
                account no longer exists
        """
        if _is_blank(access_token):
            raise AuthError("Unauthorized request")

        payload = self.issuer.verify(access_token, TokenKind.ACCESS)

        try:
            account_id = UUID(payload["sub"])
        except ValueError:
            raise AuthError("Invalid access token")

        record = await self.store.find_by_id(account_id)
        if record is None:
            raise AuthError("Invalid access token")
        return record.to_public()

    async def get_current_account(self, account_id: UUID) -> Account:
        record = await self._require(account_id)
        return record.to_public()

    async def update_account(
        self,
        account_id: UUID,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Account:
        """Replace profile fields.

        Raises:
            ValidationError: If no field is given or a given field is blank
            ConflictError: If the email belongs to another account
            NotFoundError: If the account does not exist
        """
        partial = {}
        if full_name is not None:
            partial["full_name"] = full_name
        if email is not None:
            partial["email"] = email

        if not partial or any(_is_blank(v) for v in partial.values()):
            raise ValidationError("Full name or email is required")

        try:
            record = await self.store.update_fields(account_id, partial)
        except DuplicateError as e:
            raise ConflictError("Email is already in use") from e

        if record is None:
            raise NotFoundError("User does not exist")
        return record.to_public()

    async def upload_image(self, local_path: Optional[str]) -> Optional[str]:
        """Upload a local image and return its hosted URL.

        Returns None when no path is given.

        Raises:
            UploadError: If the media host returns no usable reference
        """
        if not local_path:
            return None

        result = await self.uploader.upload(local_path)
        if result is None or not result.url:
            raise UploadError("Error while uploading file")
        return result.url

    async def _replace_image(self, account_id: UUID, field: str, local_path: Optional[str]) -> Account:
        if not local_path:
            raise ValidationError(f"{field.replace('_', ' ').capitalize()} file is missing")

        url = await self.upload_image(local_path)
        record = await self.store.update_fields(account_id, {field: url})
        if record is None:
            raise NotFoundError("User does not exist")

        logger.info("account_image_updated", account_id=str(account_id), field=field)
        return record.to_public()

    async def update_avatar(self, account_id: UUID, local_path: Optional[str]) -> Account:
        """Upload a new avatar and store its URL."""
        return await self._replace_image(account_id, "avatar", local_path)

    async def update_cover_image(self, account_id: UUID, local_path: Optional[str]) -> Account:
        """Upload a new cover image and store its URL."""
        return await self._replace_image(account_id, "cover_image", local_path)

    async def get_channel_profile(self, viewer_id: Optional[UUID], username: str) -> ChannelView:
        """Aggregate a channel's public fields with its subscription counts.

        Raises:
            ValidationError: If the username is blank
            NotFoundError: If no account has that username
        """
        if _is_blank(username):
            raise ValidationError("Username is missing")

        record = await self.store.find_by_username(username)
        if record is None:
            raise NotFoundError("Channel does not exist")

        stats = await self.channels.channel_stats(record.id, viewer_id)

        return ChannelView(
            id=record.id,
            username=record.username,
            full_name=record.full_name,
            email=record.email,
            avatar=record.avatar,
            cover_image=record.cover_image,
            subscribers_count=stats.subscribers_count,
            channels_subscribed_to_count=stats.channels_subscribed_to_count,
            is_subscribed=stats.is_subscribed,
        )

    async def get_watch_history(self, account_id: UUID) -> list[WatchedVideo]:
        """Return the account's watched videos in history order."""
        record = await self._require(account_id)
        return await self.channels.videos_by_ids(record.watch_history)
