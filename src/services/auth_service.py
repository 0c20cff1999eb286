"""
Accounts, verification/reset codes and sessions.

Users are stored under `user:{email}` and sessions under `session:{token hash}`
in two separate key-value stores. Session tokens are only ever stored hashed.
"""
import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from pydantic import ValidationError

from core.config import Settings
from core.store import KeyValueStore
from models.bookmark import utc_now
from models.user import AuthUser, SessionRecord, StoredUser, new_user_id
from services.exceptions import (
    AccountNotFoundError,
    AccountNotVerifiedError,
    CodeExpiredError,
    EmailAlreadyRegisteredError,
    InvalidCodeError,
    InvalidCredentialsError,
)

logger = logging.getLogger(__name__)

SESSION_TOKEN_PREFIX = "bh_"
CODE_DIGITS = 6
VERIFICATION = "verification"
PASSWORD_RESET = "reset"


def normalize_email(email: str) -> str:
    """Emails are case-insensitive keys."""
    return email.strip().lower()


def hash_password(password: str) -> str:
    """SHA-256 hex digest of the password."""
    return hashlib.sha256(password.encode()).hexdigest()


def hash_token(token: str) -> str:
    """Hash a session token for lookup; plaintext tokens are never stored."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_session_token() -> str:
    """Generate an opaque bearer token."""
    return f"{SESSION_TOKEN_PREFIX}{secrets.token_urlsafe(32)}"


def generate_code() -> str:
    """Generate a zero-padded numeric one-time code."""
    return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


class CodeSender(Protocol):
    """Delivers verification and reset codes to the account holder."""

    async def send_code(self, email: str, code: str, purpose: str) -> None:
        """Deliver `code` for `purpose` ("verification" or "reset") to `email`."""
        ...


class LoggingCodeSender:
    """Simulated e-mail delivery: the code is written to the application log."""

    async def send_code(self, email: str, code: str, purpose: str) -> None:
        """Log the code as the simulated delivery channel."""
        logger.info(
            "Simulated e-mail to %s: your %s code is %s", email, purpose, code,
            extra={"purpose": purpose},
        )


@dataclass(frozen=True)
class AuthSession:
    """A signed-in user and the bearer token for the session."""

    user: AuthUser
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class SignUpResult:
    """
    Outcome of a sign-up.

    When verification is required, `session` is None and a code has been sent.
    """

    user: AuthUser
    requires_verification: bool
    session: AuthSession | None = None


class AuthService:
    """Credential store operations."""

    def __init__(
        self,
        users: KeyValueStore,
        sessions: KeyValueStore,
        *,
        code_sender: CodeSender | None = None,
        code_ttl: timedelta = timedelta(minutes=15),
        session_ttl: timedelta = timedelta(days=30),
        require_verification: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._code_sender = code_sender or LoggingCodeSender()
        self._code_ttl = code_ttl
        self._session_ttl = session_ttl
        self._require_verification = require_verification
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        users: KeyValueStore,
        sessions: KeyValueStore,
        code_sender: CodeSender | None = None,
    ) -> "AuthService":
        """Build the service with TTLs and the verification flag from configuration."""
        return cls(
            users,
            sessions,
            code_sender=code_sender,
            code_ttl=timedelta(minutes=settings.verification_code_ttl_minutes),
            session_ttl=timedelta(days=settings.session_ttl_days),
            require_verification=settings.require_email_verification,
        )

    async def _get_user(self, email: str) -> StoredUser | None:
        raw = await self._users.get(f"user:{email}")
        if raw is None:
            return None
        try:
            return StoredUser.model_validate_json(raw)
        except ValidationError:
            logger.warning("user_record_corrupted", extra={"email": email})
            return None

    async def _put_user(self, user: StoredUser) -> None:
        await self._users.set(f"user:{user.email}", user.model_dump_json())

    async def _open_session(self, user: StoredUser) -> AuthSession:
        token = generate_session_token()
        now = self._clock()
        record = SessionRecord(
            user=user.to_auth_user(),
            created_at=now,
            expires_at=now + self._session_ttl,
        )
        await self._sessions.set(f"session:{hash_token(token)}", record.model_dump_json())
        return AuthSession(user=record.user, token=token, expires_at=record.expires_at)

    def _check_code(
        self,
        expected: str | None,
        expires_at: datetime | None,
        code: str,
        purpose: str,
    ) -> None:
        if expected is None or not hmac.compare_digest(expected.encode(), code.strip().encode()):
            raise InvalidCodeError(purpose)
        if expires_at is not None and self._clock() >= expires_at:
            raise CodeExpiredError(purpose)

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        """
        Register an account.

        An unverified account with the same email is overwritten, so signing up
        again is how a user gets a fresh verification code.

        Raises:
            EmailAlreadyRegisteredError: If a verified account uses the email.
        """
        email = normalize_email(email)
        existing = await self._get_user(email)
        if existing is not None and existing.is_verified:
            raise EmailAlreadyRegisteredError(email)

        now = self._clock()
        user = StoredUser(
            id=new_user_id(),
            email=email,
            password_hash=hash_password(password),
            created_at=now,
            is_verified=not self._require_verification,
        )
        if not self._require_verification:
            await self._put_user(user)
            session = await self._open_session(user)
            logger.info("account_created", extra={"user_id": user.id, "verified": True})
            return SignUpResult(user=user.to_auth_user(), requires_verification=False, session=session)

        code = generate_code()
        user = user.model_copy(
            update={
                "verification_code": code,
                "verification_code_expires_at": now + self._code_ttl,
            },
        )
        await self._put_user(user)
        await self._code_sender.send_code(email, code, VERIFICATION)
        logger.info("account_created", extra={"user_id": user.id, "verified": False})
        return SignUpResult(user=user.to_auth_user(), requires_verification=True)

    async def verify_email(self, email: str, code: str) -> AuthSession:
        """
        Confirm the verification code, mark the account verified and open a session.

        Raises:
            AccountNotFoundError: If no account uses the email.
            InvalidCodeError: If the code does not match.
            CodeExpiredError: If the code matches but is past its expiry.
        """
        email = normalize_email(email)
        user = await self._get_user(email)
        if user is None:
            raise AccountNotFoundError(email)
        self._check_code(
            user.verification_code, user.verification_code_expires_at, code, VERIFICATION,
        )
        user = user.model_copy(
            update={
                "is_verified": True,
                "verification_code": None,
                "verification_code_expires_at": None,
            },
        )
        await self._put_user(user)
        return await self._open_session(user)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Check the password and open a session.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            AccountNotVerifiedError: Correct password but the email is unverified.
        """
        email = normalize_email(email)
        user = await self._get_user(email)
        if user is None or not hmac.compare_digest(
            user.password_hash, hash_password(password),
        ):
            raise InvalidCredentialsError()
        if not user.is_verified:
            raise AccountNotVerifiedError(email)
        return await self._open_session(user)

    async def sign_out(self, token: str) -> bool:
        """Delete the session. Returns True if it existed."""
        return await self._sessions.delete(f"session:{hash_token(token)}")

    async def get_current_user(self, token: str) -> AuthUser | None:
        """
        Resolve a bearer token to its user.

        Returns None for unknown, expired or unreadable sessions; never writes.
        """
        raw = await self._sessions.get(f"session:{hash_token(token)}")
        if raw is None:
            return None
        try:
            record = SessionRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("session_corrupted")
            return None
        if self._clock() >= record.expires_at:
            return None
        return record.user

    async def request_password_reset(self, email: str) -> None:
        """
        Issue a single-use reset code and send it.

        Raises:
            AccountNotFoundError: If no account uses the email.
        """
        email = normalize_email(email)
        user = await self._get_user(email)
        if user is None:
            raise AccountNotFoundError(email)
        code = generate_code()
        user = user.model_copy(
            update={"reset_code": code, "reset_code_expires_at": self._clock() + self._code_ttl},
        )
        await self._put_user(user)
        await self._code_sender.send_code(email, code, PASSWORD_RESET)

    async def reset_password(self, email: str, code: str, new_password: str) -> AuthUser:
        """
        Replace the password after checking the reset code, then clear the code.

        Completing a reset also proves ownership of the email, so the account is
        marked verified.

        Raises:
            AccountNotFoundError: If no account uses the email.
            InvalidCodeError: If the code does not match.
            CodeExpiredError: If the code matches but is past its expiry.
        """
        email = normalize_email(email)
        user = await self._get_user(email)
        if user is None:
            raise AccountNotFoundError(email)
        self._check_code(user.reset_code, user.reset_code_expires_at, code, PASSWORD_RESET)
        user = user.model_copy(
            update={
                "password_hash": hash_password(new_password),
                "is_verified": True,
                "reset_code": None,
                "reset_code_expires_at": None,
            },
        )
        await self._put_user(user)
        logger.info("password_reset", extra={"user_id": user.id})
        return user.to_auth_user()
