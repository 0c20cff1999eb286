"""Shared exceptions for service layer operations."""


class BookmarkParseError(Exception):
    """
    Raised when a bookmark export cannot be parsed at all.

    A single malformed anchor never raises; anchors without a usable href are
    dropped. This is only for documents with nothing parseable in them.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class MissingCredentialError(Exception):
    """Raised before any external call when the classification API key is not configured."""

    def __init__(self, message: str = "Classification API key is not configured") -> None:
        super().__init__(message)


class QuotaExceededError(Exception):
    """Raised by a classifier when the external service reports its quota is exhausted."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class BackupCorruptedError(Exception):
    """
    Raised when a stored backup exists but cannot be decrypted or parsed.

    Distinct from "no backup": BackupService.load returns None in that case.
    """

    def __init__(self, user_id: str, reason: str) -> None:
        self.user_id = user_id
        self.reason = reason
        super().__init__("No valid backup available")


class AuthError(Exception):
    """Base exception for account operations rejected with a user-facing message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class EmailAlreadyRegisteredError(AuthError):
    """Raised on sign-up when a verified account already uses the email."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("This email is already registered.")


class AccountNotFoundError(AuthError):
    """Raised when no account exists for the email."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("User not found.")


class InvalidCredentialsError(AuthError):
    """Raised on sign-in with an unknown email or a wrong password."""

    def __init__(self) -> None:
        super().__init__("Invalid credentials.")


class AccountNotVerifiedError(AuthError):
    """Raised on sign-in before the email has been verified."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(
            "Account not verified. Sign up again to receive a new verification code.",
        )


class InvalidCodeError(AuthError):
    """Raised when a verification or reset code does not match."""

    def __init__(self, purpose: str) -> None:
        self.purpose = purpose
        super().__init__(f"Incorrect {purpose} code.")


class CodeExpiredError(AuthError):
    """Raised when a verification or reset code is past its expiry."""

    def __init__(self, purpose: str) -> None:
        self.purpose = purpose
        super().__init__(f"The {purpose} code has expired. Request a new one.")
