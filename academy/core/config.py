"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    access_secret_key: str
    refresh_secret_key: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    issuer: str
    admin_email: str
    admin_password: str
    reset_token_ttl_seconds: int = 60 * 60


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter and login throttle settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int
    login_max_attempts: int
    login_lockout_seconds: int


@dataclass(frozen=True)
class StorageConfig:
    """Persistence locations for credentials and the audit log."""

    audit_sqlite_path: str
    mongodb_uri: str
    mongodb_db: str


@dataclass(frozen=True)
class EmailConfig:
    """Outgoing SMTP settings for verification and reset emails."""

    smtp_host: str
    smtp_port: int
    smtp_username: str
    smtp_password: str
    from_email: str
    use_tls: bool
    frontend_url: str


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    security: SecurityConfig
    storage: StorageConfig
    email: EmailConfig
    logging: LoggingConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        access_secret = (
            os.getenv("JWT_SECRET", "").strip() or "dev-insecure-access-secret"
        )
        refresh_secret = (
            os.getenv("JWT_REFRESH_SECRET", "").strip() or "dev-insecure-refresh-secret"
        )
        access_ttl = int(os.getenv("JWT_EXPIRES_IN_SECONDS", "900"))
        refresh_ttl = int(os.getenv("JWT_REFRESH_EXPIRES_IN_SECONDS", "604800"))
        reset_ttl = int(os.getenv("PASSWORD_RESET_TTL_SECONDS", "3600"))
        issuer = os.getenv("AUTH_ISSUER", "academy").strip() or "academy"
        admin_email = os.getenv("AUTH_ADMIN_EMAIL", "").strip().lower()
        admin_password = os.getenv("AUTH_ADMIN_PASSWORD", "").strip()

        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:4200,http://127.0.0.1:4200",
            ).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024)))
        login_max_attempts = int(os.getenv("LOGIN_MAX_ATTEMPTS", "5"))
        login_lockout_seconds = int(os.getenv("LOGIN_LOCKOUT_SECONDS", str(15 * 60)))

        audit_sqlite_path = (
            os.getenv("AUDIT_SQLITE_PATH", "runtime/audit.db").strip()
            or "runtime/audit.db"
        )
        mongodb_uri = os.getenv("MONGODB_URI", "").strip()
        mongodb_db = os.getenv("MONGODB_DB", "academy").strip() or "academy"

        smtp_username = os.getenv("SMTP_USER", "").strip()
        email = EmailConfig(
            smtp_host=os.getenv("SMTP_HOST", "").strip(),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_username=smtp_username,
            smtp_password=os.getenv("SMTP_PASS", ""),
            from_email=os.getenv("SMTP_FROM", "").strip() or smtp_username,
            use_tls=_env_flag("SMTP_USE_TLS", "true"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:4200").rstrip("/"),
        )

        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"

        return AppConfig(
            auth=AuthConfig(
                access_secret_key=access_secret,
                refresh_secret_key=refresh_secret,
                access_token_ttl_seconds=access_ttl,
                refresh_token_ttl_seconds=refresh_ttl,
                issuer=issuer,
                admin_email=admin_email,
                admin_password=admin_password,
                reset_token_ttl_seconds=reset_ttl,
            ),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
                login_max_attempts=login_max_attempts,
                login_lockout_seconds=login_lockout_seconds,
            ),
            storage=StorageConfig(
                audit_sqlite_path=audit_sqlite_path,
                mongodb_uri=mongodb_uri,
                mongodb_db=mongodb_db,
            ),
            email=email,
            logging=LoggingConfig(level=log_level),
        )
