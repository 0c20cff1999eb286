"""Account and session records kept by the credential store."""
from datetime import datetime

from pydantic import BaseModel
from uuid6 import uuid7


def new_user_id() -> str:
    """Generate a unique account id."""
    return str(uuid7())


class AuthUser(BaseModel):
    """Public view of an account."""

    id: str
    email: str
    created_at: datetime
    is_verified: bool


class StoredUser(BaseModel):
    """
    Account record, keyed by normalized email.

    Only the password digest is stored. Verification and reset codes are
    single-use and carry their own expiry; both are cleared once consumed.
    """

    id: str
    email: str
    password_hash: str
    created_at: datetime
    is_verified: bool = False
    verification_code: str | None = None
    verification_code_expires_at: datetime | None = None
    reset_code: str | None = None
    reset_code_expires_at: datetime | None = None

    def to_auth_user(self) -> AuthUser:
        """Strip credentials for returning to callers."""
        return AuthUser(
            id=self.id,
            email=self.email,
            created_at=self.created_at,
            is_verified=self.is_verified,
        )


class SessionRecord(BaseModel):
    """Session written on sign-in/verification, keyed by the hash of its token."""

    user: AuthUser
    created_at: datetime
    expires_at: datetime
