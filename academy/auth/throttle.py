"""Login brute-force throttle keyed by normalized email."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Iterator

from academy.auth.audit import AuditLog
from academy.auth.models import AuditAction, RequestContext, normalize_email


@dataclass(frozen=True)
class ThrottlePolicy:
    """Lockout threshold and rolling window."""

    max_attempts: int = 5
    lockout_seconds: int = 15 * 60


class _IdentifierLocks:
    """One lock per identifier, dropped again once nobody holds it."""

    def __init__(self) -> None:
        self._registry_lock = Lock()
        self._locks: dict[str, tuple[Lock, int]] = {}

    @contextmanager
    def hold(self, identifier: str) -> Iterator[None]:
        with self._registry_lock:
            lock, users = self._locks.get(identifier, (Lock(), 0))
            self._locks[identifier] = (lock, users + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._registry_lock:
                lock, users = self._locks[identifier]
                if users <= 1:
                    del self._locks[identifier]
                else:
                    self._locks[identifier] = (lock, users - 1)


def _seconds_until(unlock_at: float, now: float) -> int:
    if unlock_at <= now:
        return 0
    return max(1, int(unlock_at - now + 0.999))


class AuditLogThrottle:
    """Throttle deriving its counter from FAILED_LOGIN audit events.

    No separate counter state is kept, so every replica reading the same
    audit log sees the same lockout decision.
    """

    def __init__(self, audit_log: AuditLog, policy: ThrottlePolicy | None = None) -> None:
        self._audit = audit_log
        self._policy = policy or ThrottlePolicy()
        self._locks = _IdentifierLocks()

    @property
    def policy(self) -> ThrottlePolicy:
        return self._policy

    def failure_count(self, identifier: str) -> int:
        return self._audit.count_failed_logins(
            normalize_email(identifier), self._policy.lockout_seconds
        )

    def record_failure(
        self, identifier: str, *, context: RequestContext | None = None
    ) -> None:
        """Record one failed credential check as a FAILED_LOGIN event."""
        key = normalize_email(identifier)
        self._audit.log(
            AuditAction.FAILED_LOGIN,
            None,
            {"email": key},
            identifier=key,
            context=context,
        )

    def is_locked(self, identifier: str) -> bool:
        return self.remaining_lockout_seconds(identifier) > 0

    def remaining_lockout_seconds(self, identifier: str) -> int:
        now = self._audit.now()
        recent = self._audit.recent_failed_logins(
            normalize_email(identifier),
            now - self._policy.lockout_seconds,
            self._policy.max_attempts,
        )
        if len(recent) < self._policy.max_attempts:
            return 0
        # The lock lifts once the oldest of the last max_attempts failures leaves the window.
        return _seconds_until(recent[-1] + self._policy.lockout_seconds, now)

    def clear(self, identifier: str) -> None:
        """No-op: the USER_LOGIN audit event written on success is the reset point."""
        return None

    def guard(self, identifier: str):
        """Serialize check-and-record for one identifier within this process."""
        return self._locks.hold(normalize_email(identifier))


@dataclass
class _AttemptCounter:
    count: int
    last_attempt_at: float


class InMemoryLoginThrottle:
    """Process-local throttle used by the client to pre-empt doomed logins."""

    def __init__(
        self,
        policy: ThrottlePolicy | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._policy = policy or ThrottlePolicy()
        self._clock = clock
        self._attempts: dict[str, _AttemptCounter] = {}
        self._lock = Lock()
        self._locks = _IdentifierLocks()

    @property
    def policy(self) -> ThrottlePolicy:
        return self._policy

    def failure_count(self, identifier: str) -> int:
        with self._lock:
            counter = self._attempts.get(normalize_email(identifier))
            return counter.count if counter else 0

    def record_failure(self, identifier: str) -> None:
        key = normalize_email(identifier)
        now = self._clock()
        with self._lock:
            counter = self._attempts.get(key)
            # A failure after the window starts a fresh count.
            if counter is None or now - counter.last_attempt_at >= self._policy.lockout_seconds:
                self._attempts[key] = _AttemptCounter(count=1, last_attempt_at=now)
                return
            counter.count += 1
            counter.last_attempt_at = now

    def is_locked(self, identifier: str) -> bool:
        return self.remaining_lockout_seconds(identifier) > 0

    def remaining_lockout_seconds(self, identifier: str) -> int:
        with self._lock:
            counter = self._attempts.get(normalize_email(identifier))
            if counter is None or counter.count < self._policy.max_attempts:
                return 0
            return _seconds_until(
                counter.last_attempt_at + self._policy.lockout_seconds, self._clock()
            )

    def clear(self, identifier: str) -> None:
        with self._lock:
            self._attempts.pop(normalize_email(identifier), None)

    def guard(self, identifier: str):
        return self._locks.hold(normalize_email(identifier))
