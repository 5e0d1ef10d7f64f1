"""Authentication service for login, registration, refresh and account recovery."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable

from academy.auth.audit import AuditLog
from academy.auth.email import EmailDeliveryError, EmailService
from academy.auth.errors import (
    AccountDeactivated,
    AccountLocked,
    ConflictingEmail,
    EmailAlreadyVerified,
    EmailNotVerified,
    InvalidCredentials,
    InvalidOrExpiredToken,
    UserNotFound,
)
from academy.auth.models import (
    AuditAction,
    AuthSession,
    CredentialRecord,
    RegisterRequest,
    RequestContext,
    TokenPayload,
    UserRole,
    normalize_email,
)
from academy.auth.repository import CredentialRepository
from academy.auth.throttle import AuditLogThrottle
from academy.auth.tokens import TokenIssuer
from academy.core.config import AuthConfig
from academy.core.security import generate_opaque_token, hash_password, verify_password

LOGGER = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)
REGISTER_MESSAGE = (
    "Registration successful. Please check your email to verify your account."
)


class AuthService:
    """Authentication domain service.

    Every failure is raised as an ``AuthError`` variant; the HTTP layer maps
    them to status codes.
    """

    def __init__(
        self,
        *,
        repo: CredentialRepository,
        tokens: TokenIssuer,
        throttle: AuditLogThrottle,
        audit: AuditLog,
        email: EmailService,
        config: AuthConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize service dependencies."""
        self._repo = repo
        self._tokens = tokens
        self._throttle = throttle
        self._audit = audit
        self._email = email
        self._config = config
        self._clock = clock

    def bootstrap_admin_user(self) -> None:
        """Ensure bootstrap admin user exists when configured in the environment."""
        if not self._config.admin_email or not self._config.admin_password:
            return
        if self._repo.find_by_email(self._config.admin_email) is not None:
            return

        self._repo.upsert_user(
            CredentialRecord(
                user_id=uuid.uuid4().hex,
                email=self._config.admin_email,
                password_hash=hash_password(self._config.admin_password),
                first_name="Admin",
                last_name="User",
                role=UserRole.ADMIN,
                is_verified=True,
                is_active=True,
            )
        )
        LOGGER.info("Bootstrap admin user created", extra={"email": self._config.admin_email})

    def login(
        self, email: str, password: str, context: RequestContext | None = None
    ) -> AuthSession:
        """Authenticate credentials and issue an access/refresh token pair."""
        key = normalize_email(email)
        with self._throttle.guard(key):
            retry_after = self._throttle.remaining_lockout_seconds(key)
            if retry_after > 0:
                self._audit.log(
                    AuditAction.ACCOUNT_LOCKED,
                    None,
                    {"email": key, "attempts": self._throttle.failure_count(key)},
                    identifier=key,
                    context=context,
                )
                LOGGER.warning(
                    "login_blocked_by_throttle",
                    extra={"email": key, "retry_after": retry_after},
                )
                raise AccountLocked(retry_after)

            user = self._repo.find_by_email(key)
            if user is None or not verify_password(password, user.password_hash):
                self._throttle.record_failure(key, context=context)
                raise InvalidCredentials()

        if not user.is_active:
            raise AccountDeactivated()
        if not user.is_verified:
            raise EmailNotVerified()

        now = self._clock()
        self._repo.update_last_login(user.user_id, now)
        self._audit.log(
            AuditAction.USER_LOGIN,
            user.user_id,
            {"email": user.email},
            identifier=key,
            context=context,
        )
        self._throttle.clear(key)

        payload = TokenPayload.for_user(user)
        user = user.model_copy(update={"last_login_at": now})
        return AuthSession(
            user=user.public_view(),
            access_token=self._tokens.issue_access_token(payload),
            refresh_token=self._tokens.issue_refresh_token(payload),
        )

    def register(
        self, request: RegisterRequest, context: RequestContext | None = None
    ) -> dict[str, Any]:
        """Create an unverified student account and send its verification link."""
        key = normalize_email(request.email)
        if self._repo.find_by_email(key) is not None:
            raise ConflictingEmail()

        verification_token = uuid.uuid4().hex
        user = self._repo.create_user(
            CredentialRecord(
                user_id=uuid.uuid4().hex,
                email=key,
                password_hash=hash_password(request.password),
                first_name=request.first_name.strip(),
                last_name=request.last_name.strip(),
                role=UserRole.STUDENT,
                is_verified=False,
                is_active=True,
                verification_token=verification_token,
            )
        )

        self._email.send_verification_email(user.email, verification_token)
        self._audit.log(
            AuditAction.USER_REGISTER,
            user.user_id,
            {"email": user.email},
            identifier=key,
            context=context,
        )
        return {"message": REGISTER_MESSAGE, "user": user.public_view()}

    def refresh(self, refresh_token: str) -> str:
        """Exchange a refresh token for a new access token built from current account data."""
        claims = self._tokens.verify_refresh_token(refresh_token)
        user = self._repo.find_by_id(claims.sub)
        if user is None or not user.is_active:
            raise InvalidOrExpiredToken("Invalid refresh token")

        self._audit.log(
            AuditAction.TOKEN_REFRESH,
            user.user_id,
            identifier=user.email,
        )
        return self._tokens.issue_access_token(TokenPayload.for_user(user))

    def logout(self, user_id: str, context: RequestContext | None = None) -> dict[str, str]:
        """Record logout; tokens are stateless so nothing is revoked server-side."""
        self._audit.log(AuditAction.USER_LOGOUT, user_id, {}, context=context)
        return {"message": "Logout successful"}

    def forgot_password(
        self, email: str, context: RequestContext | None = None
    ) -> dict[str, str]:
        """Issue a reset link when the account exists; the reply never says whether it does."""
        key = normalize_email(email)
        user = self._repo.find_by_email(key)
        if user is None:
            return {"message": FORGOT_PASSWORD_MESSAGE}

        reset_token = generate_opaque_token()
        expires_at = self._clock() + self._config.reset_token_ttl_seconds
        self._repo.set_password_reset_token(user.user_id, reset_token, expires_at)
        try:
            self._email.send_password_reset_email(user.email, reset_token)
        except EmailDeliveryError:
            LOGGER.exception("Password reset email failed", extra={"user_id": user.user_id})

        self._audit.log(
            AuditAction.PASSWORD_RESET_REQUEST,
            user.user_id,
            {"email": user.email},
            identifier=key,
            context=context,
        )
        return {"message": FORGOT_PASSWORD_MESSAGE}

    def reset_password(
        self, token: str, new_password: str, context: RequestContext | None = None
    ) -> dict[str, str]:
        """Set a new password from a valid, unexpired reset token."""
        user = self._repo.find_by_reset_token(token)
        if (
            user is None
            or user.reset_expires_at is None
            or user.reset_expires_at < self._clock()
        ):
            raise InvalidOrExpiredToken("Invalid or expired reset token")

        self._repo.update_password(user.user_id, hash_password(new_password))
        self._repo.clear_password_reset_token(user.user_id)
        self._audit.log(
            AuditAction.PASSWORD_RESET_COMPLETE,
            user.user_id,
            {"email": user.email},
            identifier=user.email,
            context=context,
        )
        return {"message": "Password reset successful"}

    def verify_email(
        self, token: str, context: RequestContext | None = None
    ) -> dict[str, str]:
        """Mark the account owning ``token`` as verified."""
        user = self._repo.find_by_verification_token(token)
        if user is None:
            raise InvalidOrExpiredToken("Invalid verification token")
        if user.is_verified:
            raise EmailAlreadyVerified()

        self._repo.verify_email(user.user_id)
        self._audit.log(
            AuditAction.EMAIL_VERIFICATION,
            user.user_id,
            {"email": user.email},
            identifier=user.email,
            context=context,
        )
        return {"message": "Email verified successfully"}

    def resend_verification(self, email: str) -> dict[str, str]:
        """Rotate the verification token and send it again."""
        user = self._repo.find_by_email(email)
        if user is None:
            raise UserNotFound()
        if user.is_verified:
            raise EmailAlreadyVerified()

        verification_token = uuid.uuid4().hex
        self._repo.update_verification_token(user.user_id, verification_token)
        self._email.send_verification_email(user.email, verification_token)
        return {"message": "Verification email sent"}

    def verify_access_token(self, token: str) -> dict[str, str]:
        """Validate access token and return normalized user claims."""
        claims = self._tokens.verify_access_token(token)
        return {
            "user_id": claims.sub,
            "email": claims.email,
            "role": str(claims.role),
        }
