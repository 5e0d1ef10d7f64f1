"""Authentication API router."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from academy.api.contracts import (
    ApiErrorResponse,
    AuditEventResponse,
    AuditLogListResponse,
    AuthMeResponse,
    AuthUserClaimsResponse,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    RegisterResponse,
)
from academy.api.errors import to_api_error
from academy.auth.audit import AuditLog
from academy.auth.errors import InvalidOrExpiredToken
from academy.auth.middleware import current_user, require_role
from academy.auth.models import (
    AuditAction,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    RequestContext,
    ResendVerificationRequest,
    ResetPasswordRequest,
    UserRole,
)
from academy.auth.service import AuthService

_ERRORS_401: dict[int | str, dict[str, Any]] = {401: {"model": ApiErrorResponse}}


def request_context(request: Request) -> RequestContext:
    """Collect client address and user agent for audit events."""
    forwarded = request.headers.get("x-forwarded-for", "")
    ip_address = forwarded.split(",")[0].strip() or (
        request.client.host if request.client else None
    )
    return RequestContext(
        ip_address=ip_address or None,
        user_agent=request.headers.get("user-agent"),
    )


def create_auth_router(service: AuthService, audit: AuditLog) -> APIRouter:
    """Build the /auth router; domain ``AuthError`` failures reach the app handler."""
    router = APIRouter(prefix="/auth", tags=["auth"])

    @router.post("/login", response_model=LoginResponse, responses=_ERRORS_401)
    def login(req: LoginRequest, request: Request) -> LoginResponse:
        """Authenticate user and return token pair."""
        session = service.login(req.email, req.password, request_context(request))
        return LoginResponse(**session.model_dump())

    @router.post(
        "/register",
        status_code=201,
        response_model=RegisterResponse,
        responses={409: {"model": ApiErrorResponse}},
    )
    def register(req: RegisterRequest, request: Request) -> RegisterResponse:
        """Create an account pending email verification."""
        return RegisterResponse(**service.register(req, request_context(request)))

    @router.post("/refresh", response_model=RefreshResponse, responses=_ERRORS_401)
    def refresh(req: RefreshRequest) -> RefreshResponse:
        """Issue a new access token from a refresh token."""
        return RefreshResponse(access_token=service.refresh(req.refresh_token))

    @router.post("/logout", response_model=MessageResponse, responses=_ERRORS_401)
    def logout(
        request: Request, user: dict[str, Any] = Depends(current_user)
    ) -> MessageResponse:
        """Record logout for the authenticated user."""
        return MessageResponse(**service.logout(user["user_id"], request_context(request)))

    @router.post("/forgot-password", response_model=MessageResponse)
    def forgot_password(req: ForgotPasswordRequest, request: Request) -> MessageResponse:
        """Send a reset link; the reply is identical for unknown emails."""
        return MessageResponse(**service.forgot_password(req.email, request_context(request)))

    @router.post(
        "/reset-password",
        response_model=MessageResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def reset_password(req: ResetPasswordRequest, request: Request) -> MessageResponse:
        """Set a new password from a reset token."""
        try:
            result = service.reset_password(
                req.token, req.new_password, request_context(request)
            )
        except InvalidOrExpiredToken as exc:
            raise to_api_error(exc, token_status_code=400) from exc
        return MessageResponse(**result)

    @router.get(
        "/verify-email",
        response_model=MessageResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def verify_email(request: Request, token: str = Query(default="")) -> MessageResponse:
        """Confirm the email address owning the verification token."""
        try:
            result = service.verify_email(token, request_context(request))
        except InvalidOrExpiredToken as exc:
            raise to_api_error(exc, token_status_code=400) from exc
        return MessageResponse(**result)

    @router.post(
        "/resend-verification",
        response_model=MessageResponse,
        responses={400: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def resend_verification(req: ResendVerificationRequest) -> MessageResponse:
        """Send a fresh verification link."""
        return MessageResponse(**service.resend_verification(req.email))

    @router.get("/me", response_model=AuthMeResponse, responses=_ERRORS_401)
    def me(user: dict[str, Any] = Depends(current_user)) -> AuthMeResponse:
        """Return current authenticated user claims from access token."""
        return AuthMeResponse(user=AuthUserClaimsResponse(**user))

    @router.get(
        "/audit-logs",
        response_model=AuditLogListResponse,
        responses={**_ERRORS_401, 403: {"model": ApiErrorResponse}},
    )
    def audit_logs(
        subject_id: str | None = Query(default=None, alias="subjectId"),
        action: AuditAction | None = Query(default=None),
        limit: int = Query(default=100, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
        _admin: dict[str, Any] = Depends(require_role(UserRole.ADMIN)),
    ) -> AuditLogListResponse:
        """List audit events, newest first (admin only)."""
        events = audit.list_events(
            subject_id=subject_id, action=action, limit=limit, offset=offset
        )
        return AuditLogListResponse(
            items=[AuditEventResponse(**event.model_dump(mode="json")) for event in events]
        )

    return router
