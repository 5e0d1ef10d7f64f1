from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from academy.auth.repository import CredentialRepository
from tests.fakes import make_app_config
from web_api import create_app

PASSWORD = "Secret@123"


@pytest.fixture
def client(tmp_path: Path) -> Iterator[TestClient]:
    config = make_app_config(admin_email="admin@example.com", admin_password="Admin@1234")
    with TestClient(create_app(config, app_root=tmp_path)) as test_client:
        yield test_client


def _register(client: TestClient, email: str = "student@example.com"):
    return client.post(
        "/auth/register",
        json={"email": email, "password": PASSWORD, "firstName": "Ada", "lastName": "Lovelace"},
    )


def _verify(client: TestClient, tmp_path: Path, email: str = "student@example.com") -> None:
    user = CredentialRepository(tmp_path).find_by_email(email)
    assert user is not None and user.verification_token
    response = client.get("/auth/verify-email", params={"token": user.verification_token})
    assert response.status_code == 200


def _login(client: TestClient, email: str, password: str) -> dict:
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def test_health_sets_request_id(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "req-1"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"] == "req-1"


def test_register_returns_camel_case_profile(client: TestClient) -> None:
    response = _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["firstName"] == "Ada"
    assert body["user"]["isVerified"] is False
    assert "message" in body

    duplicate = _register(client, email="STUDENT@example.com")
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "USER_EMAIL_CONFLICT"


def test_register_enforces_password_policy(client: TestClient) -> None:
    response = client.post(
        "/auth/register",
        json={"email": "a@example.com", "password": "alllowercase1", "firstName": "A", "lastName": "B"},
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_login_requires_verified_email(client: TestClient, tmp_path: Path) -> None:
    _register(client)

    response = client.post("/auth/login", json={"email": "student@example.com", "password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTH_EMAIL_NOT_VERIFIED"

    bad = client.get("/auth/verify-email", params={"token": "nope"})
    assert bad.status_code == 400
    assert bad.json()["error_code"] == "AUTH_TOKEN_INVALID"

    _verify(client, tmp_path)
    session = _login(client, "student@example.com", PASSWORD)
    assert session["accessToken"] and session["refreshToken"]
    assert session["user"]["email"] == "student@example.com"


def test_me_refresh_and_logout(client: TestClient, tmp_path: Path) -> None:
    _register(client)
    _verify(client, tmp_path)
    session = _login(client, "student@example.com", PASSWORD)
    headers = {"Authorization": f"Bearer {session['accessToken']}"}

    missing = client.get("/auth/me")
    assert missing.status_code == 401
    assert missing.json()["error_code"] == "AUTH_MISSING_TOKEN"

    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "student@example.com"
    assert me.json()["user"]["role"] == "student"

    refreshed = client.post("/auth/refresh", json={"refreshToken": session["refreshToken"]})
    assert refreshed.status_code == 200
    assert set(refreshed.json()) == {"accessToken"}

    bad_refresh = client.post("/auth/refresh", json={"refreshToken": session["accessToken"]})
    assert bad_refresh.status_code == 401
    assert bad_refresh.json()["error_code"] == "AUTH_TOKEN_INVALID"

    logout = client.post("/auth/logout", headers=headers)
    assert logout.status_code == 200
    assert logout.json() == {"message": "Logout successful"}


def test_lockout_returns_retry_after(client: TestClient, tmp_path: Path) -> None:
    _register(client)
    _verify(client, tmp_path)

    for _ in range(5):
        response = client.post(
            "/auth/login", json={"email": "student@example.com", "password": "Wrong@1234"}
        )
        assert response.json()["error_code"] == "AUTH_INVALID_CREDENTIALS"

    locked = client.post("/auth/login", json={"email": "student@example.com", "password": PASSWORD})
    assert locked.status_code == 401
    assert locked.json()["error_code"] == "AUTH_ACCOUNT_LOCKED"
    assert int(locked.headers["Retry-After"]) > 0


def test_audit_logs_require_admin(client: TestClient, tmp_path: Path) -> None:
    _register(client)
    _verify(client, tmp_path)
    student = _login(client, "student@example.com", PASSWORD)
    admin = _login(client, "admin@example.com", "Admin@1234")

    forbidden = client.get(
        "/auth/audit-logs", headers={"Authorization": f"Bearer {student['accessToken']}"}
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["error_code"] == "AUTH_FORBIDDEN"

    listing = client.get(
        "/auth/audit-logs",
        params={"action": "USER_LOGIN"},
        headers={"Authorization": f"Bearer {admin['accessToken']}"},
    )
    assert listing.status_code == 200
    items = listing.json()["items"]
    assert len(items) == 2
    assert all(item["action"] == "USER_LOGIN" for item in items)
    assert "subjectId" in items[0]


def test_forgot_and_reset_password_endpoints(client: TestClient) -> None:
    generic = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert generic.status_code == 200
    assert generic.json()["message"].startswith("If an account with that email exists")

    invalid = client.post(
        "/auth/reset-password", json={"token": "missing", "newPassword": "Changed@456"}
    )
    assert invalid.status_code == 400
    assert invalid.json()["error_code"] == "AUTH_TOKEN_INVALID"


def test_resend_verification_unknown_user(client: TestClient) -> None:
    response = client.post("/auth/resend-verification", json={"email": "nobody@example.com"})

    assert response.status_code == 404
    assert response.json()["error_code"] == "USER_NOT_FOUND"
