"""Pydantic schemas for account endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Credentials(BaseModel):
    """Email and password, for sign-up and sign-in."""

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(..., min_length=6, max_length=128)


class VerifyEmailRequest(BaseModel):
    """Verification code sent at sign-up."""

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    code: str = Field(..., min_length=1, max_length=16)


class PasswordResetRequest(BaseModel):
    """Ask for a reset code."""

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)


class PasswordResetConfirm(BaseModel):
    """Reset code and the new password."""

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    code: str = Field(..., min_length=1, max_length=16)
    new_password: str = Field(..., min_length=6, max_length=128)


class UserResponse(BaseModel):
    """Public account data."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    created_at: datetime
    is_verified: bool


class SessionResponse(BaseModel):
    """
    A new session.

    The `token` is the bearer token for subsequent requests. Only its hash is
    stored, so it cannot be retrieved again.
    """

    user: UserResponse
    token: str
    expires_at: datetime


class SignUpResponse(BaseModel):
    """Result of a sign-up. `session` is None while verification is pending."""

    user: UserResponse
    requires_verification: bool
    session: SessionResponse | None = None


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str
