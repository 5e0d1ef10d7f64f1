"""Client session lifecycle: proactive refresh, absolute timeout and teardown."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import StrEnum
from functools import partial
from typing import Any, Callable

from academy.auth.models import UserRole
from academy.client.storage import SecureStorage
from academy.core.security import read_unverified_claims

LOGGER = logging.getLogger(__name__)

LOGIN_ROUTE = "/login"
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."
REFRESH_THRESHOLD_SECONDS = 5 * 60
SESSION_TIMEOUT_SECONDS = 24 * 60 * 60

Refresher = Callable[[str], str]
Navigator = Callable[[str, dict[str, str]], None]
Notifier = Callable[[str], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


class AuthState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    TOKEN_EXPIRING_SOON = "token_expiring_soon"
    REFRESHING = "refreshing"
    LOGGED_OUT = "logged_out"


class TeardownReason(StrEnum):
    LOGOUT = "logout"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    REFRESH_FAILED = "refresh_failed"


@dataclass
class ClientSession:
    """One authenticated session and the timers it owns."""

    user: dict[str, Any]
    access_token: str
    refresh_token: str
    started_at: float
    refresh_timer: Any = None
    timeout_timer: Any = None
    active: bool = True
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def cancel_timers(self) -> None:
        with self.lock:
            for timer in (self.refresh_timer, self.timeout_timer):
                if timer is not None:
                    timer.cancel()
            self.refresh_timer = None
            self.timeout_timer = None


def access_token_expiry(access_token: str) -> float | None:
    """Return the ``exp`` claim of a token, or None when unreadable."""
    try:
        exp = read_unverified_claims(access_token).get("exp")
        return float(exp) if exp is not None else None
    except (TypeError, ValueError):
        return None


class SessionManager:
    """Drive ``AuthState`` transitions for one client.

    A new session cancels the previous session's timers, and a callback from
    a superseded session is ignored, so stale timers never tear down a newer
    session.
    """

    def __init__(
        self,
        storage: SecureStorage,
        *,
        refresher: Refresher | None = None,
        navigator: Navigator | None = None,
        notifier: Notifier | None = None,
        refresh_threshold_seconds: float = REFRESH_THRESHOLD_SECONDS,
        session_timeout_seconds: float = SESSION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.storage = storage
        self.refresher = refresher
        self.current_route: str | None = None
        self._navigator = navigator
        self._notifier = notifier
        self._refresh_threshold = refresh_threshold_seconds
        self._session_timeout = session_timeout_seconds
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._state = AuthState.UNAUTHENTICATED
        self._session: ClientSession | None = None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session(self) -> ClientSession | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._state in (
            AuthState.AUTHENTICATED,
            AuthState.TOKEN_EXPIRING_SOON,
            AuthState.REFRESHING,
        )

    @property
    def access_token(self) -> str | None:
        session = self._session
        return session.access_token if session is not None else None

    @property
    def current_user(self) -> dict[str, Any] | None:
        session = self._session
        return session.user if session is not None else None

    def has_role(self, role: UserRole) -> bool:
        user = self.current_user
        return bool(user) and str(user.get("role") or "") == str(role)

    def is_admin(self) -> bool:
        return self.has_role(UserRole.ADMIN)

    def is_instructor(self) -> bool:
        return self.has_role(UserRole.INSTRUCTOR)

    def begin_authentication(self) -> None:
        with self._lock:
            self._state = AuthState.AUTHENTICATING

    def authentication_failed(self) -> None:
        with self._lock:
            if self._state is AuthState.AUTHENTICATING:
                self._state = AuthState.UNAUTHENTICATED

    def start(
        self,
        user: dict[str, Any],
        access_token: str,
        refresh_token: str,
        *,
        started_at: float | None = None,
    ) -> ClientSession:
        """Install an authenticated session and arm its timers.

        ``started_at`` is the original authentication time when resuming a
        stored session; the absolute timeout counts from it.
        """
        now = self._clock()
        session = ClientSession(
            user=user,
            access_token=access_token,
            refresh_token=refresh_token,
            started_at=now if started_at is None else started_at,
        )
        with self._lock:
            previous = self._session
            if previous is not None:
                previous.active = False
                previous.cancel_timers()
            self._session = session
            self._state = AuthState.AUTHENTICATED

        self.storage.set_auth_tokens(access_token, refresh_token)
        self.storage.set_user_data(user)
        self.storage.set_session_started(session.started_at)

        timeout_delay = max(0.0, session.started_at + self._session_timeout - now)
        with session.lock:
            session.timeout_timer = self._arm(timeout_delay, partial(self._on_timeout, session))
            self._schedule_refresh(session)
        LOGGER.info("client_session_started", extra={"user_id": user.get("id")})
        return session

    def restore(self) -> ClientSession | None:
        """Resume a stored session unless its access token or absolute lifetime expired."""
        access_token = self.storage.get_auth_token()
        refresh_token = self.storage.get_refresh_token()
        user = self.storage.get_user_data()
        started_at = self.storage.get_session_started()
        if not access_token or not refresh_token or not user:
            return None
        now = self._clock()
        if started_at is None or started_at + self._session_timeout <= now:
            LOGGER.info("Stored session passed its absolute timeout; discarding")
            self.storage.clear_auth_tokens()
            return None
        exp = access_token_expiry(access_token)
        if exp is None or exp <= now:
            self.storage.clear_auth_tokens()
            return None
        return self.start(user, access_token, refresh_token, started_at=started_at)

    def refresh_delay(self, access_token: str) -> float | None:
        """Seconds until refresh is due; 0 when already inside the threshold."""
        exp = access_token_expiry(access_token)
        if exp is None:
            return None
        return max(0.0, exp - self._clock() - self._refresh_threshold)

    def _arm(self, delay: float, callback: Callable[[], None]) -> Any:
        timer = self._timer_factory(delay, callback)
        timer.daemon = True
        timer.start()
        return timer

    def _schedule_refresh(self, session: ClientSession) -> None:
        delay = self.refresh_delay(session.access_token)
        if delay is None:
            LOGGER.warning("Access token carries no exp claim; refresh not scheduled")
            return
        with session.lock:
            if session.refresh_timer is not None:
                session.refresh_timer.cancel()
            session.refresh_timer = self._arm(delay, partial(self._on_refresh_due, session))

    def _is_current(self, session: ClientSession) -> bool:
        return session.active and session is self._session

    def _on_refresh_due(self, session: ClientSession) -> None:
        with self._lock:
            if not self._is_current(session):
                return
            self._state = AuthState.TOKEN_EXPIRING_SOON
        self.refresh_now(session)

    def _on_timeout(self, session: ClientSession) -> None:
        if self._is_current(session):
            self.end(TeardownReason.TIMEOUT, session=session)

    def refresh_now(self, session: ClientSession | None = None) -> bool:
        """Swap in a new access token; any failure tears the session down."""
        session = session or self._session
        if session is None or self.refresher is None:
            return False
        with self._lock:
            if not self._is_current(session):
                return False
            self._state = AuthState.REFRESHING

        try:
            access_token = self.refresher(session.refresh_token)
        except Exception:
            LOGGER.exception("Token refresh failed")
            self.end(TeardownReason.REFRESH_FAILED, session=session)
            return False

        with self._lock:
            if not self._is_current(session):
                return False
            session.access_token = access_token
            self._state = AuthState.AUTHENTICATED
        self.storage.set_auth_tokens(access_token, session.refresh_token)
        self._schedule_refresh(session)
        return True

    def handle_unauthorized(self, return_url: str | None = None) -> None:
        """Tear down after the server rejected the access token."""
        self.end(TeardownReason.UNAUTHORIZED, return_url=return_url)

    def end(
        self,
        reason: TeardownReason = TeardownReason.LOGOUT,
        *,
        return_url: str | None = None,
        session: ClientSession | None = None,
    ) -> None:
        """Clear tokens and profile, cancel timers and send the user to login."""
        with self._lock:
            if session is not None and not self._is_current(session):
                return
            current = self._session
            if current is not None:
                current.active = False
                current.cancel_timers()
            self._session = None
            self._state = AuthState.LOGGED_OUT

        self.storage.clear_auth_tokens()
        LOGGER.info("client_session_ended", extra={"action": str(reason)})

        if reason is TeardownReason.TIMEOUT and self._notifier is not None:
            self._notifier(SESSION_EXPIRED_MESSAGE)
        if self._navigator is None:
            return
        params: dict[str, str] = {}
        if reason is not TeardownReason.LOGOUT:
            target = return_url or self.current_route
            if target and target != LOGIN_ROUTE:
                params["return_url"] = target
        self._navigator(LOGIN_ROUTE, params)
