from __future__ import annotations

import json
import logging

import pytest

from academy.core.config import AppConfig
from academy.core.logging import JsonLogFormatter, set_correlation_id


def test_app_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in [
        "JWT_SECRET",
        "JWT_REFRESH_SECRET",
        "JWT_EXPIRES_IN_SECONDS",
        "LOGIN_MAX_ATTEMPTS",
        "LOGIN_LOCKOUT_SECONDS",
        "MONGODB_URI",
        "SMTP_HOST",
        "FRONTEND_URL",
    ]:
        monkeypatch.delenv(name, raising=False)

    config = AppConfig.from_env()

    assert config.auth.access_token_ttl_seconds == 900
    assert config.auth.refresh_token_ttl_seconds == 7 * 24 * 3600
    assert config.auth.access_secret_key != config.auth.refresh_secret_key
    assert config.security.login_max_attempts == 5
    assert config.security.login_lockout_seconds == 900
    assert config.storage.mongodb_uri == ""
    assert config.email.frontend_url == "http://localhost:4200"


def test_app_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JWT_SECRET", "a")
    monkeypatch.setenv("JWT_REFRESH_SECRET", "b")
    monkeypatch.setenv("AUTH_ADMIN_EMAIL", " Admin@Example.com ")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://academy.example, https://admin.example")
    monkeypatch.setenv("SMTP_USER", "mailer@example.com")
    monkeypatch.delenv("SMTP_FROM", raising=False)
    monkeypatch.setenv("SMTP_USE_TLS", "false")
    monkeypatch.setenv("FRONTEND_URL", "https://academy.example/")

    config = AppConfig.from_env()

    assert config.auth.access_secret_key == "a"
    assert config.auth.refresh_secret_key == "b"
    assert config.auth.admin_email == "admin@example.com"
    assert config.security.cors_allowed_origins == [
        "https://academy.example",
        "https://admin.example",
    ]
    assert config.email.from_email == "mailer@example.com"
    assert config.email.use_tls is False
    assert config.email.frontend_url == "https://academy.example"


def test_json_log_formatter_includes_correlation_and_extras() -> None:
    set_correlation_id("corr-1")
    record = logging.LogRecord("academy", logging.WARNING, __file__, 1, "login_blocked", None, None)
    record.email = "student@example.com"
    record.retry_after = 120

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["message"] == "login_blocked"
    assert payload["correlation_id"] == "corr-1"
    assert payload["email"] == "student@example.com"
    assert payload["retry_after"] == 120
    assert payload["level"] == "WARNING"
