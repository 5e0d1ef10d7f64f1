from __future__ import annotations

import pytest

from academy.api.errors import ApiErrorCode, to_api_error, to_error_payload
from academy.auth.errors import (
    AccountLocked,
    AuthError,
    ConflictingEmail,
    EmailAlreadyVerified,
    EmailNotVerified,
    Forbidden,
    InvalidCredentials,
    InvalidOrExpiredToken,
    UserNotFound,
)


def test_to_error_payload_preserves_structured_detail() -> None:
    payload = to_error_payload(
        {"error_code": "AUTH_TOKEN_INVALID", "message": "Invalid"},
        401,
    )

    assert payload == {"error_code": "AUTH_TOKEN_INVALID", "message": "Invalid"}


def test_to_error_payload_normalizes_plain_string() -> None:
    payload = to_error_payload("boom", 500)

    assert payload == {"error_code": "HTTP_500", "message": "boom"}


@pytest.mark.parametrize(
    ("error", "status_code", "error_code"),
    [
        (InvalidCredentials(), 401, ApiErrorCode.AUTH_INVALID_CREDENTIALS),
        (EmailNotVerified(), 401, ApiErrorCode.AUTH_EMAIL_NOT_VERIFIED),
        (InvalidOrExpiredToken(), 401, ApiErrorCode.AUTH_TOKEN_INVALID),
        (Forbidden(), 403, ApiErrorCode.AUTH_FORBIDDEN),
        (ConflictingEmail(), 409, ApiErrorCode.USER_EMAIL_CONFLICT),
        (UserNotFound(), 404, ApiErrorCode.USER_NOT_FOUND),
        (EmailAlreadyVerified(), 400, ApiErrorCode.USER_ALREADY_VERIFIED),
    ],
)
def test_to_api_error_maps_auth_failures(
    error: AuthError, status_code: int, error_code: ApiErrorCode
) -> None:
    api_error = to_api_error(error)

    assert api_error.status_code == status_code
    assert api_error.detail == {"error_code": str(error_code), "message": error.message}


def test_to_api_error_reports_one_time_tokens_as_bad_request() -> None:
    api_error = to_api_error(InvalidOrExpiredToken(), token_status_code=400)

    assert api_error.status_code == 400


def test_account_locked_carries_retry_after_header() -> None:
    api_error = to_api_error(AccountLocked(61))

    assert api_error.status_code == 401
    assert api_error.headers == {"Retry-After": "61"}
    assert "Try again in 2 minutes" in api_error.detail["message"]


def test_account_locked_retry_after_is_at_least_one_second() -> None:
    assert AccountLocked(0).retry_after_seconds == 1
