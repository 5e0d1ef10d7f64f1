"""HTTP client for the academy auth API built on ``requests``."""

from __future__ import annotations

import logging
from typing import Any

import requests

from academy.auth.errors import AccountLocked
from academy.auth.models import normalize_email
from academy.auth.throttle import InMemoryLoginThrottle
from academy.client.session import Navigator, Notifier, SessionManager, TeardownReason
from academy.client.storage import MemoryBackend, SecureStorage

LOGGER = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})
LOGOUT_PATH = "/auth/logout"
_AUTH_PATH_MARKERS = ("/auth/", "/login", "/register")

_STATUS_MESSAGES: dict[int, str] = {
    0: "Network error. Please check your internet connection.",
    400: "Invalid request. Please check your input.",
    401: "Your session has expired. Please log in again.",
    403: "You do not have permission to perform this action.",
    404: "The requested resource was not found.",
    409: "A conflict occurred. Please try again.",
    422: "Validation failed. Please check your input.",
    429: "Too many requests. Please wait a moment before trying again.",
    500: "Server error. Please try again later.",
    502: "Service temporarily unavailable. Please try again later.",
    503: "Service temporarily unavailable. Please try again later.",
    504: "Service temporarily unavailable. Please try again later.",
}
# Statuses where the server's own message is more useful than the generic one.
_SERVER_MESSAGE_STATUSES = frozenset({400, 409, 422})


def describe_http_error(status_code: int, server_message: str | None = None) -> str:
    """Map an HTTP status to the message shown to the user."""
    if server_message and (
        status_code in _SERVER_MESSAGE_STATUSES or status_code not in _STATUS_MESSAGES
    ):
        return server_message
    return _STATUS_MESSAGES.get(status_code, "An unexpected error occurred")


def is_auth_path(path: str) -> bool:
    return any(marker in path for marker in _AUTH_PATH_MARKERS)


class AcademyApiError(Exception):
    """Failed API call with a user-facing message."""

    def __init__(self, status_code: int, message: str, error_code: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error_code = error_code or f"HTTP_{status_code}"

    @property
    def retryable(self) -> bool:
        """Whether the user should be offered a retry."""
        return self.status_code == 0 or self.status_code >= 500


class AcademyClient:
    """Auth API client that keeps a ``SessionManager`` in sync with the server."""

    def __init__(
        self,
        base_url: str,
        *,
        storage: SecureStorage | None = None,
        session_manager: SessionManager | None = None,
        http: requests.Session | None = None,
        navigator: Navigator | None = None,
        notifier: Notifier | None = None,
        login_throttle: InMemoryLoginThrottle | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = http or requests.Session()
        self._timeout = timeout
        self._login_throttle = login_throttle or InMemoryLoginThrottle()
        if session_manager is None:
            storage = storage or SecureStorage(
                session_backend=MemoryBackend(),
                persistent_backend=MemoryBackend(),
                secure_context=self.base_url.startswith("https://"),
            )
            session_manager = SessionManager(
                storage, navigator=navigator, notifier=notifier
            )
        if session_manager.refresher is None:
            session_manager.refresher = self.refresh_access_token
        self.session = session_manager

    def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str],
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        retries_left = 1 if method.upper() == "GET" and not is_auth_path(path) else 0
        while True:
            try:
                response = self._http.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=headers,
                    timeout=self._timeout,
                )
            except requests.RequestException as exc:
                if retries_left:
                    retries_left -= 1
                    LOGGER.warning("Retrying %s %s after network error", method, path)
                    continue
                raise AcademyApiError(0, describe_http_error(0)) from exc
            if response.status_code in RETRYABLE_STATUS_CODES and retries_left:
                retries_left -= 1
                LOGGER.warning(
                    "Retrying %s %s", method, path, extra={"status_code": response.status_code}
                )
                continue
            return response

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> Any:
        """Send one API call; a 401 on an authenticated call ends the session."""
        headers = {"Accept": "application/json"}
        token = self.session.access_token if authenticated else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = self._send(method, path, json=json, params=params, headers=headers)
        if response.status_code >= 400:
            error = self._error_from_response(response, path)
            LOGGER.error(
                "HTTP error: %s %s",
                method,
                path,
                extra={"status_code": response.status_code},
            )
            # Logout tears the session down itself.
            if response.status_code == 401 and token and path != LOGOUT_PATH:
                self.session.handle_unauthorized(self.session.current_route)
            raise error
        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _error_from_response(response: requests.Response, path: str) -> AcademyApiError:
        error_code = ""
        server_message = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error_code = str(body.get("error_code") or "")
            server_message = body.get("message") or None
        if is_auth_path(path) and server_message:
            message = str(server_message)
        else:
            message = describe_http_error(response.status_code, server_message)
        return AcademyApiError(response.status_code, message, error_code)

    def login(self, email: str, password: str) -> dict[str, Any]:
        """Authenticate and start a client session; returns the user profile."""
        key = normalize_email(email)
        remaining = self._login_throttle.remaining_lockout_seconds(key)
        if remaining > 0:
            raise AcademyApiError(
                401, AccountLocked(remaining).message, "AUTH_ACCOUNT_LOCKED"
            )

        self.session.begin_authentication()
        try:
            payload = self.request(
                "POST",
                "/auth/login",
                json={"email": email, "password": password},
                authenticated=False,
            )
        except AcademyApiError as exc:
            self.session.authentication_failed()
            if exc.error_code == "AUTH_INVALID_CREDENTIALS":
                self._login_throttle.record_failure(key)
            raise

        self._login_throttle.clear(key)
        self.session.start(payload["user"], payload["accessToken"], payload["refreshToken"])
        return payload["user"]

    def register(
        self, email: str, password: str, first_name: str, last_name: str
    ) -> dict[str, Any]:
        return self.request(
            "POST",
            "/auth/register",
            json={
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
            },
            authenticated=False,
        )

    def refresh_access_token(self, refresh_token: str) -> str:
        payload = self.request(
            "POST",
            "/auth/refresh",
            json={"refreshToken": refresh_token},
            authenticated=False,
        )
        return str(payload["accessToken"])

    def logout(self) -> None:
        """Tell the server, then always tear the local session down."""
        try:
            if self.session.access_token:
                self.request("POST", LOGOUT_PATH)
        except AcademyApiError as exc:
            LOGGER.warning("Server logout failed: %s", exc.message)
        finally:
            self.session.end(TeardownReason.LOGOUT)

    def forgot_password(self, email: str) -> str:
        payload = self.request(
            "POST", "/auth/forgot-password", json={"email": email}, authenticated=False
        )
        return str(payload.get("message") or "")

    def reset_password(self, token: str, new_password: str) -> str:
        payload = self.request(
            "POST",
            "/auth/reset-password",
            json={"token": token, "newPassword": new_password},
            authenticated=False,
        )
        return str(payload.get("message") or "")

    def verify_email(self, token: str) -> str:
        payload = self.request(
            "GET", "/auth/verify-email", params={"token": token}, authenticated=False
        )
        return str(payload.get("message") or "")

    def resend_verification(self, email: str) -> str:
        payload = self.request(
            "POST", "/auth/resend-verification", json={"email": email}, authenticated=False
        )
        return str(payload.get("message") or "")

    def me(self) -> dict[str, Any]:
        return self.request("GET", "/auth/me")["user"]

    def audit_logs(
        self,
        *,
        subject_id: str | None = None,
        action: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if subject_id:
            params["subjectId"] = subject_id
        if action:
            params["action"] = action
        return self.request("GET", "/auth/audit-logs", params=params)["items"]

    def close(self) -> None:
        self._http.close()
