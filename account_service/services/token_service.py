"""Signed JWT access and refresh tokens."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from uuid import uuid4

import jwt
import structlog

from account_service.errors import ExpiredTokenError, InvalidTokenError

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"


class TokenKind(str, Enum):
    """Token kinds, each signed with its own secret."""

    ACCESS = "access"
    REFRESH = "refresh"


class TokenIssuer:
    """Creates and verifies time-bounded access and refresh tokens.

    Revocation is not checked here; the session manager compares presented
    refresh tokens against the value stored on the account.
    """

    def __init__(
        self,
        access_secret: str,
        access_expires: timedelta,
        refresh_secret: str,
        refresh_expires: timedelta,
        algorithm: str = JWT_ALGORITHM,
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("Both access and refresh token secrets are required")
        self._secrets = {
            TokenKind.ACCESS: access_secret,
            TokenKind.REFRESH: refresh_secret,
        }
        self._expires = {
            TokenKind.ACCESS: access_expires,
            TokenKind.REFRESH: refresh_expires,
        }
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings) -> "TokenIssuer":
        return cls(
            access_secret=settings.access_token_secret,
            access_expires=settings.access_token_expires,
            refresh_secret=settings.refresh_token_secret,
            refresh_expires=settings.refresh_token_expires,
            algorithm=settings.jwt_algorithm,
        )

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self._expires[TokenKind.ACCESS].total_seconds())

    def _encode(self, kind: TokenKind, claims: dict) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "type": kind.value,
            "iat": now,
            "exp": now + self._expires[kind],
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def issue_access(self, account) -> str:
        """Create a signed access token carrying the account's identity fields.

        Args:
            account: Account or AccountRecord to encode

        Returns:
            Encoded JWT string
        """
        token = self._encode(
            TokenKind.ACCESS,
            {
                "sub": str(account.id),
                "email": account.email,
                "username": account.username,
                "full_name": account.full_name,
            },
        )
        logger.debug("access_token_issued", account_id=str(account.id))
        return token

    def issue_refresh(self, account) -> str:
        """Create a signed refresh token carrying only the account id.

        A random ``jti`` keeps consecutive tokens distinct even when issued
        within the same second.
        """
        token = self._encode(
            TokenKind.REFRESH,
            {"sub": str(account.id), "jti": uuid4().hex},
        )
        logger.debug("refresh_token_issued", account_id=str(account.id))
        return token

    def verify(self, token: str, expected_kind: TokenKind) -> dict:
        """Decode and validate a token of the given kind.

        Args:
            token: Encoded JWT string
            expected_kind: Kind the caller expects (selects the secret)

        Returns:
            Decoded payload dict

        Raises:
            ExpiredTokenError: If the token has expired
            InvalidTokenError: If the token is malformed, tampered with, of
                the wrong kind, or lacks a subject
        """
        expected_kind = TokenKind(expected_kind)
        try:
            payload = jwt.decode(
                token,
                self._secrets[expected_kind],
                algorithms=[self.algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError(f"{expected_kind.value.capitalize()} token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid {expected_kind.value} token: {e}")

        if payload.get("type") != expected_kind.value:
            raise InvalidTokenError(f"Invalid {expected_kind.value} token: wrong token type")
        if not payload.get("sub"):
            raise InvalidTokenError(f"Invalid {expected_kind.value} token: missing subject")
        return payload
