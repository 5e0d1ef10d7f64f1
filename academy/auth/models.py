"""Pydantic models for authentication domain."""

from __future__ import annotations

import re
import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PASSWORD_POLICY = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]")
PASSWORD_POLICY_MESSAGE = (
    "Password must contain at least one uppercase letter, one lowercase letter, "
    "one number and one special character"
)
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    """Return the canonical identifier used for lookups and throttling."""
    return (email or "").strip().lower()


class UserRole(StrEnum):
    """Closed set of platform roles."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class AuditAction(StrEnum):
    """Security-relevant actions recorded in the audit log."""

    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    USER_REGISTER = "USER_REGISTER"
    FAILED_LOGIN = "FAILED_LOGIN"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    PASSWORD_RESET_REQUEST = "PASSWORD_RESET_REQUEST"
    PASSWORD_RESET_COMPLETE = "PASSWORD_RESET_COMPLETE"
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    TOKEN_REFRESH = "TOKEN_REFRESH"


class CredentialRecord(BaseModel):
    """Persisted credential record for one account."""

    user_id: str
    email: str
    password_hash: str
    first_name: str = ""
    last_name: str = ""
    role: UserRole = UserRole.STUDENT
    is_verified: bool = False
    is_active: bool = True
    verification_token: str | None = None
    reset_token: str | None = None
    reset_expires_at: float | None = None
    last_login_at: float | None = None
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)

    def public_view(self) -> dict[str, Any]:
        """Return the profile without password hash or one-time tokens."""
        return {
            "id": self.user_id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": str(self.role),
            "isVerified": self.is_verified,
            "isActive": self.is_active,
            "lastLoginAt": self.last_login_at,
            "createdAt": self.created_at,
        }


class TokenPayload(BaseModel):
    """Identity claims carried by access and refresh tokens."""

    sub: str
    email: str
    role: UserRole

    @staticmethod
    def for_user(user: CredentialRecord) -> "TokenPayload":
        return TokenPayload(sub=user.user_id, email=user.email, role=user.role)


class AuditEvent(BaseModel):
    """Append-only security audit record."""

    event_id: str
    action: AuditAction
    subject_id: str | None = None
    identifier: str = ""
    details: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    timestamp: float


class CamelModel(BaseModel):
    """Request model accepting camelCase aliases and field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    """Login request payload."""

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)


def _check_password_policy(value: str) -> str:
    if not PASSWORD_POLICY.match(value):
        raise ValueError(PASSWORD_POLICY_MESSAGE)
    return value


def _check_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value.strip()):
        raise ValueError("email must be a valid email address")
    return value.strip()


class RegisterRequest(CamelModel):
    """Registration request payload."""

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def validate_password_policy(cls, value: str) -> str:
        return _check_password_policy(value)


class RefreshRequest(CamelModel):
    """Refresh request payload."""

    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(CamelModel):
    """Forgot-password request payload."""

    email: str = Field(min_length=3, max_length=255)


class ResetPasswordRequest(CamelModel):
    """Reset-password request payload."""

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password_policy(cls, value: str) -> str:
        return _check_password_policy(value)


class ResendVerificationRequest(CamelModel):
    """Resend-verification request payload."""

    email: str = Field(min_length=3, max_length=255)


class AuthSession(BaseModel):
    """Result of a successful login."""

    user: dict[str, Any]
    access_token: str
    refresh_token: str


class RequestContext(BaseModel):
    """Client metadata attached to audit events."""

    ip_address: str | None = None
    user_agent: str | None = None
