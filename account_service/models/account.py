"""Account, channel, and session models."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, PrivateAttr, field_validator


def normalize_identifier(value: str) -> str:
    """Trim and lowercase a username or email for storage and lookup."""
    return value.strip().lower()


class Account(BaseModel):
    """Public view of an account. Never carries the password or refresh token."""

    id: UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str = ""
    watch_history: list[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AccountRecord(BaseModel):
    """Stored account, including credential fields.

    ``password`` holds plaintext only between assignment and the next save;
    the store replaces it with a bcrypt digest. Assigning ``password`` marks
    the record so the store hashes exactly once per change.
    """

    id: UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str = ""
    password: str = Field(repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)
    watch_history: list[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    _password_modified: bool = PrivateAttr(default=False)

    @field_validator("username", "email")
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_identifier(v)

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v: str) -> str:
        return v.strip()

    def __setattr__(self, name, value):
        if name == "password":
            super().__setattr__("_password_modified", True)
        super().__setattr__(name, value)

    @classmethod
    def new(
        cls,
        username: str,
        email: str,
        full_name: str,
        password: str,
        avatar: str,
        cover_image: Optional[str] = None,
    ) -> "AccountRecord":
        """Build a record for a fresh registration (password pending hash)."""
        now = datetime.now(timezone.utc)
        record = cls(
            id=uuid4(),
            username=username,
            email=email,
            full_name=full_name,
            avatar=avatar,
            cover_image=cover_image or "",
            password=password,
            created_at=now,
            updated_at=now,
        )
        record._password_modified = True
        return record

    @property
    def password_modified(self) -> bool:
        return self._password_modified

    def hash_password_if_modified(self, hasher) -> bool:
        """Replace a freshly assigned plaintext password with its digest.

        Returns True if hashing happened. A second call without an
        intervening assignment is a no-op.
        """
        if not self._password_modified:
            return False
        # bypass __setattr__ so storing the digest does not re-mark the field
        super().__setattr__("password", hasher.hash(self.password))
        self._password_modified = False
        return True

    def to_public(self) -> Account:
        """Return the account with password and refresh token withheld."""
        return Account(**self.model_dump(exclude={"password", "refresh_token"}))


class TokenPair(BaseModel):
    """Access and refresh tokens issued together."""

    access_token: str
    refresh_token: str


class LoginResult(BaseModel):
    """Outcome of a successful login."""

    account: Account
    tokens: TokenPair


class ChannelStats(BaseModel):
    """Subscription counts for a channel, relative to a viewer."""

    subscribers_count: int = 0
    channels_subscribed_to_count: int = 0
    is_subscribed: bool = False


class ChannelView(BaseModel):
    """An account viewed as a subscribable channel."""

    id: UUID
    username: str
    full_name: str
    email: str
    avatar: str
    cover_image: str = ""
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool


class VideoOwner(BaseModel):
    """Compact owner summary attached to a watched video."""

    id: UUID
    username: str
    full_name: str
    avatar: str


class WatchedVideo(BaseModel):
    """A video from an account's watch history."""

    id: UUID
    title: str
    thumbnail: str
    duration: float = 0.0
    views: int = 0
    created_at: datetime
    owner: VideoOwner
