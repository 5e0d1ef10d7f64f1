from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from academy.api.contracts import HealthResponse
from academy.api.http_setup import register_exception_handlers, register_http_middleware
from academy.auth.audit import AuditLog
from academy.auth.email import EmailService
from academy.auth.middleware import create_auth_middleware
from academy.auth.repository import CredentialRepository
from academy.auth.router import create_auth_router
from academy.auth.service import AuthService
from academy.auth.throttle import AuditLogThrottle, ThrottlePolicy
from academy.auth.tokens import TokenIssuer
from academy.core.config import AppConfig
from academy.core.logging import setup_logging
from academy.core.mongo_migrations import apply_mongo_migrations

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent


def create_app(config: AppConfig | None = None, app_root: Path | None = None) -> FastAPI:
    config = config or APP_CONFIG
    app_root = app_root or APP_ROOT
    (app_root / "runtime").mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="Royal Trading Academy Auth API", version="1.0.0")
    apply_mongo_migrations(config.storage)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    audit_log = AuditLog(database_path=(app_root / config.storage.audit_sqlite_path).resolve())
    auth_service = AuthService(
        repo=CredentialRepository(app_root, config.storage),
        tokens=TokenIssuer(config.auth),
        throttle=AuditLogThrottle(
            audit_log,
            ThrottlePolicy(
                max_attempts=config.security.login_max_attempts,
                lockout_seconds=config.security.login_lockout_seconds,
            ),
        ),
        audit=audit_log,
        email=EmailService(config.email),
        config=config.auth,
    )
    auth_service.bootstrap_admin_user()

    app.include_router(create_auth_router(auth_service, audit_log))
    # Registered before the shared middleware so it runs inside request logging.
    app.middleware("http")(create_auth_middleware(auth_service))
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.on_event("shutdown")
    def close_audit_log() -> None:
        audit_log.close()

    return app


app = create_app()
