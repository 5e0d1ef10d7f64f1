"""Append-only security audit log backed by SQLite runtime state."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from pathlib import Path
from threading import Lock
from typing import Any, Callable

from academy.auth.models import AuditAction, AuditEvent, RequestContext
from academy.core.migrations import apply_migrations

LOGGER = logging.getLogger(__name__)

# Events after which earlier failed logins no longer count toward a lockout.
THROTTLE_RESET_ACTIONS = (AuditAction.USER_LOGIN, AuditAction.PASSWORD_RESET_COMPLETE)


class AuditLog:
    """Security event store; writes never break the calling flow."""

    def __init__(
        self,
        *,
        database_path: Path,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize audit storage and apply schema migrations."""
        apply_migrations(database_path)
        self._connection = sqlite3.connect(str(database_path), check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = Lock()
        self._clock = clock

    def now(self) -> float:
        """Return current time from the audit clock."""
        return self._clock()

    def log(
        self,
        action: AuditAction,
        subject_id: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        identifier: str = "",
        context: RequestContext | None = None,
    ) -> None:
        """Append one audit event, logging and swallowing storage failures."""
        context = context or RequestContext()
        try:
            serialized = json.dumps(details, ensure_ascii=False) if details else None
            with self._lock:
                self._connection.execute(
                    """
                    INSERT INTO audit_log(
                      event_id, action, subject_id, identifier, details,
                      ip_address, user_agent, timestamp
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        uuid.uuid4().hex,
                        str(action),
                        subject_id,
                        identifier,
                        serialized,
                        context.ip_address,
                        (context.user_agent or "")[:512] or None,
                        self._clock(),
                    ),
                )
                self._connection.commit()
        except (sqlite3.Error, TypeError, ValueError):
            LOGGER.exception(
                "Failed to create audit log",
                extra={"action": str(action), "user_id": subject_id},
            )
            return

        LOGGER.info(
            "audit_event_recorded",
            extra={"action": str(action), "user_id": subject_id or "anonymous"},
        )

    def _failures_since_reset(
        self, columns: str, identifier: str, since: float, suffix: str = "", extra: tuple = ()
    ) -> list[sqlite3.Row]:
        reset_placeholders = ", ".join("?" for _ in THROTTLE_RESET_ACTIONS)
        with self._lock:
            return self._connection.execute(
                f"""
                SELECT {columns}
                FROM audit_log
                WHERE identifier = ?
                  AND action = ?
                  AND timestamp >= ?
                  AND timestamp > COALESCE(
                    (
                      SELECT MAX(timestamp) FROM audit_log
                      WHERE identifier = ?
                        AND action IN ({reset_placeholders})
                    ),
                    0
                  )
                {suffix}
                """,
                (
                    identifier,
                    str(AuditAction.FAILED_LOGIN),
                    since,
                    identifier,
                    *[str(action) for action in THROTTLE_RESET_ACTIONS],
                    *extra,
                ),
            ).fetchall()

    def failed_login_stats(self, identifier: str, since: float) -> tuple[int, float | None]:
        """Return failure count and last failure time for identifier since ``since``.

        Failures older than the identifier's latest successful login or
        completed password reset are not counted.
        """
        row = self._failures_since_reset(
            "COUNT(*) AS failures, MAX(timestamp) AS last_failed_at", identifier, since
        )[0]
        failures = int(row["failures"] or 0)
        last_failed_at = row["last_failed_at"]
        return failures, (float(last_failed_at) if last_failed_at is not None else None)

    def recent_failed_logins(self, identifier: str, since: float, limit: int) -> list[float]:
        """Return up to ``limit`` counted failure times since ``since``, newest first."""
        rows = self._failures_since_reset(
            "timestamp", identifier, since, "ORDER BY timestamp DESC LIMIT ?", (limit,)
        )
        return [float(row["timestamp"]) for row in rows]

    def count_failed_logins(self, identifier: str, window_seconds: int) -> int:
        """Return number of failed logins for identifier within the window."""
        failures, _ = self.failed_login_stats(identifier, self._clock() - window_seconds)
        return failures

    def list_events(
        self,
        *,
        subject_id: str | None = None,
        action: AuditAction | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditEvent]:
        """Return newest-first audit events filtered by subject and action."""
        clauses: list[str] = []
        params: list[Any] = []
        if subject_id:
            clauses.append("subject_id = ?")
            params.append(subject_id)
        if action:
            clauses.append("action = ?")
            params.append(str(action))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([max(1, int(limit)), max(0, int(offset))])

        with self._lock:
            rows = self._connection.execute(
                f"""
                SELECT * FROM audit_log
                {where}
                ORDER BY timestamp DESC
                LIMIT ? OFFSET ?
                """,
                params,
            ).fetchall()

        return [
            AuditEvent(
                event_id=str(row["event_id"]),
                action=AuditAction(str(row["action"])),
                subject_id=row["subject_id"],
                identifier=str(row["identifier"] or ""),
                details=row["details"],
                ip_address=row["ip_address"],
                user_agent=row["user_agent"],
                timestamp=float(row["timestamp"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close SQLite resources."""
        with self._lock:
            self._connection.close()
