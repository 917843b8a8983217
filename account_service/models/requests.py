"""Request and response bodies for the users API."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from account_service.models.account import Account


class LoginRequest(BaseModel):
    """Login credentials. Either username or email identifies the account.

    Attributes:
        username: Account handle (case-insensitive)
        email: Account email (case-insensitive)
        password: Plain-text password
    """

    username: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    """Refresh token in the body. Falls back to the refreshToken cookie when omitted."""

    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """Request to replace the current password.

    Attributes:
        old_password: Current password, verified before the change
        new_password: Replacement password
    """

    old_password: str
    new_password: str = Field(..., min_length=1)

    @field_validator("new_password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Password cannot be empty or whitespace only")
        return v


class UpdateAccountRequest(BaseModel):
    """Profile fields to replace. Only provided fields are updated."""

    full_name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)


class TokenResponse(BaseModel):
    """Token pair returned from login and refresh.

    Attributes:
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived JWT for obtaining new access tokens
        token_type: Always "bearer"
        expires_in: Access token lifetime in seconds
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(ge=1, description="Access token lifetime in seconds")


class LoginResponse(TokenResponse):
    """Token pair plus the authenticated account."""

    user: Account


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str
