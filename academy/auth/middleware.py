"""HTTP middleware that enforces bearer auth on protected routes."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import Request
from fastapi.responses import JSONResponse

from academy.api.errors import to_api_error, to_error_payload
from academy.auth.errors import AuthError, Forbidden, MissingToken
from academy.auth.models import UserRole
from academy.auth.service import AuthService

PUBLIC_AUTH_PATHS = frozenset(
    {
        "/auth/login",
        "/auth/register",
        "/auth/refresh",
        "/auth/forgot-password",
        "/auth/reset-password",
        "/auth/verify-email",
        "/auth/resend-verification",
    }
)


def extract_bearer_token(authorization: str | None) -> str:
    """Extract bearer token from authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def _error_response(error: AuthError) -> JSONResponse:
    api_error = to_api_error(error)
    return JSONResponse(
        status_code=api_error.status_code,
        content=to_error_payload(api_error.detail, api_error.status_code),
        headers=api_error.headers,
    )


def create_auth_middleware(service: AuthService) -> Callable:
    """Create middleware function that validates access tokens on /auth routes."""

    async def auth_middleware(request: Request, call_next: Callable):
        """Validate bearer token and attach user claims to request state."""
        path = request.url.path.rstrip("/") or "/"
        if request.method == "OPTIONS" or not path.startswith("/auth/"):
            return await call_next(request)
        if path in PUBLIC_AUTH_PATHS:
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("authorization"))
        if not token:
            return _error_response(MissingToken())

        try:
            user = service.verify_access_token(token)
        except AuthError as exc:
            return _error_response(exc)

        request.state.user = user
        return await call_next(request)

    return auth_middleware


def current_user(request: Request) -> dict[str, Any]:
    """Return claims attached by the auth middleware."""
    user = getattr(request.state, "user", None)
    if not user:
        raise to_api_error(MissingToken())
    return user


def require_role(*roles: UserRole) -> Callable[[Request], dict[str, Any]]:
    """Build a dependency that admits only the given roles."""
    allowed = {str(role) for role in roles}

    def dependency(request: Request) -> dict[str, Any]:
        user = current_user(request)
        if str(user.get("role") or "") not in allowed:
            raise to_api_error(Forbidden())
        return user

    return dependency
