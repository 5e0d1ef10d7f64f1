"""Shared API error types and helpers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException

from academy.auth.errors import AccountLocked, AuthError, AuthErrorKind


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_ACCOUNT_LOCKED = "AUTH_ACCOUNT_LOCKED"
    AUTH_ACCOUNT_DEACTIVATED = "AUTH_ACCOUNT_DEACTIVATED"
    AUTH_EMAIL_NOT_VERIFIED = "AUTH_EMAIL_NOT_VERIFIED"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    USER_EMAIL_CONFLICT = "USER_EMAIL_CONFLICT"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_ALREADY_VERIFIED = "USER_ALREADY_VERIFIED"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self,
        *,
        status_code: int,
        error_code: ApiErrorCode,
        message: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Build an HTTP exception with standard detail structure."""
        super().__init__(
            status_code=status_code,
            detail={"error_code": str(error_code), "message": message},
            headers=headers,
        )


# Login failures share 401 so the status alone never tells which check failed.
_AUTH_ERROR_MAP: dict[AuthErrorKind, tuple[int, ApiErrorCode]] = {
    AuthErrorKind.INVALID_CREDENTIALS: (401, ApiErrorCode.AUTH_INVALID_CREDENTIALS),
    AuthErrorKind.ACCOUNT_LOCKED: (401, ApiErrorCode.AUTH_ACCOUNT_LOCKED),
    AuthErrorKind.ACCOUNT_DEACTIVATED: (401, ApiErrorCode.AUTH_ACCOUNT_DEACTIVATED),
    AuthErrorKind.EMAIL_NOT_VERIFIED: (401, ApiErrorCode.AUTH_EMAIL_NOT_VERIFIED),
    AuthErrorKind.INVALID_OR_EXPIRED_TOKEN: (401, ApiErrorCode.AUTH_TOKEN_INVALID),
    AuthErrorKind.MISSING_TOKEN: (401, ApiErrorCode.AUTH_MISSING_TOKEN),
    AuthErrorKind.FORBIDDEN: (403, ApiErrorCode.AUTH_FORBIDDEN),
    AuthErrorKind.CONFLICTING_EMAIL: (409, ApiErrorCode.USER_EMAIL_CONFLICT),
    AuthErrorKind.USER_NOT_FOUND: (404, ApiErrorCode.USER_NOT_FOUND),
    AuthErrorKind.EMAIL_ALREADY_VERIFIED: (400, ApiErrorCode.USER_ALREADY_VERIFIED),
}


def to_api_error(error: AuthError, *, token_status_code: int = 401) -> ApiError:
    """Translate an auth domain failure into the HTTP error envelope.

    ``token_status_code`` lets reset/verification endpoints report a bad
    one-time token as a 400 while bearer/refresh tokens stay 401.
    """
    status_code, error_code = _AUTH_ERROR_MAP[error.kind]
    if error.kind is AuthErrorKind.INVALID_OR_EXPIRED_TOKEN:
        status_code = token_status_code
    headers = None
    if isinstance(error, AccountLocked):
        headers = {"Retry-After": str(error.retry_after_seconds)}
    return ApiError(
        status_code=status_code,
        error_code=error_code,
        message=error.message,
        headers=headers,
    )


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }
