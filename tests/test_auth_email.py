from __future__ import annotations

import smtplib
from typing import Any

import pytest

from academy.auth import email as email_module
from academy.auth.email import EmailDeliveryError, EmailService
from academy.core.config import EmailConfig


def _config(**overrides: Any) -> EmailConfig:
    values: dict[str, Any] = {
        "smtp_host": "smtp.example.com",
        "smtp_port": 587,
        "smtp_username": "mailer",
        "smtp_password": "pw",
        "from_email": "noreply@example.com",
        "use_tls": True,
        "frontend_url": "https://academy.example",
    }
    values.update(overrides)
    return EmailConfig(**values)


class _FakeSMTP:
    sent: list[Any] = []
    fail = False

    def __init__(self, host: str, port: int, timeout: int) -> None:
        self.host = host

    def __enter__(self) -> "_FakeSMTP":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def starttls(self) -> None:
        return None

    def login(self, username: str, password: str) -> None:
        return None

    def send_message(self, msg: Any) -> None:
        if _FakeSMTP.fail:
            raise smtplib.SMTPException("rejected")
        _FakeSMTP.sent.append(msg)


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch: pytest.MonkeyPatch):
    _FakeSMTP.sent = []
    _FakeSMTP.fail = False
    monkeypatch.setattr(email_module.smtplib, "SMTP", _FakeSMTP)
    return _FakeSMTP


def test_verification_email_links_to_frontend(fake_smtp) -> None:
    EmailService(_config()).send_verification_email("student@example.com", "tok123")

    [message] = fake_smtp.sent
    assert message["To"] == "student@example.com"
    assert "https://academy.example/verify-email?token=tok123" in message.get_content()


def test_reset_email_failure_raises_delivery_error(fake_smtp) -> None:
    fake_smtp.fail = True

    with pytest.raises(EmailDeliveryError):
        EmailService(_config()).send_password_reset_email("student@example.com", "tok")


def test_unconfigured_smtp_skips_sending(fake_smtp) -> None:
    service = EmailService(_config(smtp_host=""))

    service.send_verification_email("student@example.com", "tok")

    assert not service.configured
    assert fake_smtp.sent == []
