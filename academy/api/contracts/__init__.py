"""Public API response contracts."""

from academy.api.contracts.models import (
    ApiErrorResponse,
    AuditEventResponse,
    AuditLogListResponse,
    AuthMeResponse,
    AuthUserClaimsResponse,
    HealthResponse,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    RegisterResponse,
)

__all__ = [
    "ApiErrorResponse",
    "AuditEventResponse",
    "AuditLogListResponse",
    "AuthMeResponse",
    "AuthUserClaimsResponse",
    "HealthResponse",
    "LoginResponse",
    "MessageResponse",
    "RefreshResponse",
    "RegisterResponse",
]
