"""Authentication failure variants raised by the auth domain.

The domain never picks HTTP status codes; ``academy.api.errors.to_api_error``
translates each variant into the transport envelope at the boundary.
"""

from __future__ import annotations

from enum import StrEnum


class AuthErrorKind(StrEnum):
    """Tag identifying an authentication failure variant."""

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    INVALID_OR_EXPIRED_TOKEN = "INVALID_OR_EXPIRED_TOKEN"
    CONFLICTING_EMAIL = "CONFLICTING_EMAIL"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    EMAIL_ALREADY_VERIFIED = "EMAIL_ALREADY_VERIFIED"
    MISSING_TOKEN = "MISSING_TOKEN"
    FORBIDDEN = "FORBIDDEN"


class AuthError(Exception):
    """Base class for every authentication failure."""

    kind: AuthErrorKind
    default_message: str = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    kind = AuthErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class AccountLocked(AuthError):
    """Login blocked by the throttle; carries seconds until unlock."""

    kind = AuthErrorKind.ACCOUNT_LOCKED

    def __init__(self, retry_after_seconds: int) -> None:
        self.retry_after_seconds = max(1, int(retry_after_seconds))
        minutes = max(1, -(-self.retry_after_seconds // 60))
        super().__init__(
            "Account temporarily locked due to too many failed login attempts. "
            f"Try again in {minutes} minutes."
        )


class AccountDeactivated(AuthError):
    kind = AuthErrorKind.ACCOUNT_DEACTIVATED
    default_message = "Account is deactivated"


class EmailNotVerified(AuthError):
    kind = AuthErrorKind.EMAIL_NOT_VERIFIED
    default_message = "Please verify your email address before logging in"


class InvalidOrExpiredToken(AuthError):
    kind = AuthErrorKind.INVALID_OR_EXPIRED_TOKEN
    default_message = "Invalid or expired token"


class ConflictingEmail(AuthError):
    kind = AuthErrorKind.CONFLICTING_EMAIL
    default_message = "User with this email already exists"


class UserNotFound(AuthError):
    kind = AuthErrorKind.USER_NOT_FOUND
    default_message = "User not found"


class EmailAlreadyVerified(AuthError):
    kind = AuthErrorKind.EMAIL_ALREADY_VERIFIED
    default_message = "Email is already verified"


class MissingToken(AuthError):
    kind = AuthErrorKind.MISSING_TOKEN
    default_message = "Missing bearer token"


class Forbidden(AuthError):
    kind = AuthErrorKind.FORBIDDEN
    default_message = "You do not have permission to perform this action"
