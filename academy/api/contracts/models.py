"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class CamelResponse(BaseModel):
    """Response model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginResponse(CamelResponse):
    """Authentication session response payload."""

    user: dict[str, Any]
    access_token: str
    refresh_token: str


class RefreshResponse(CamelResponse):
    """Refresh response payload carrying only the new access token."""

    access_token: str


class MessageResponse(CamelResponse):
    """Plain confirmation message."""

    message: str


class RegisterResponse(CamelResponse):
    """Registration response payload."""

    message: str
    user: dict[str, Any]


class AuthUserClaimsResponse(CamelResponse):
    """Authenticated user claims payload."""

    user_id: str
    email: str
    role: str


class AuthMeResponse(CamelResponse):
    """Current user endpoint response payload."""

    user: AuthUserClaimsResponse


class AuditEventResponse(CamelResponse):
    """One audit log entry."""

    event_id: str
    action: str
    subject_id: str | None = None
    identifier: str = ""
    details: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    timestamp: float


class AuditLogListResponse(CamelResponse):
    """Audit log listing payload."""

    items: list[AuditEventResponse]
