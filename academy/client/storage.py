"""Client-side key/value storage with obfuscation and per-key expiry."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Protocol

LOGGER = logging.getLogger(__name__)

KEY_PREFIX = "rta_"
# XOR obfuscation key. This hides values from casual inspection only; it is not encryption.
OBFUSCATION_KEY = b"rta_secure_key_2024"
STORAGE_QUOTA_BYTES = 5 * 1024 * 1024

AUTH_TOKEN_KEY = "auth_token"
REFRESH_TOKEN_KEY = "refresh_token"
CURRENT_USER_KEY = "current_user"
SESSION_STARTED_KEY = "session_started_at"
AUTH_TOKEN_EXPIRY_SECONDS = 24 * 60 * 60
REFRESH_TOKEN_EXPIRY_SECONDS = 7 * 24 * 60 * 60


class StorageBackend(Protocol):
    """Raw string store addressed by full (prefixed) key."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryBackend:
    """Process-lifetime store; the session-scoped backend."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}
        self._lock = Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items)


class JsonFileBackend:
    """Persistent store kept as one JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = Lock()

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.exception("Failed reading storage file: %s", self._path)
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(k): str(v) for k, v in payload.items()}

    def _write(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8")

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            items = self._read()
            items[key] = value
            self._write(items)

    def remove(self, key: str) -> None:
        with self._lock:
            items = self._read()
            if key in items:
                del items[key]
                self._write(items)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._read())


def obfuscate(text: str) -> str:
    """XOR ``text`` with the fixed key and base64-encode the result."""
    raw = text.encode("utf-8")
    mixed = bytes(b ^ OBFUSCATION_KEY[i % len(OBFUSCATION_KEY)] for i, b in enumerate(raw))
    return base64.b64encode(mixed).decode("ascii")


def deobfuscate(value: str) -> str:
    """Reverse ``obfuscate``; raises ``ValueError`` for undecodable input."""
    try:
        mixed = base64.b64decode(value.encode("ascii"), validate=True)
        raw = bytes(b ^ OBFUSCATION_KEY[i % len(OBFUSCATION_KEY)] for i, b in enumerate(mixed))
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeError) as exc:
        raise ValueError("Failed to decrypt data") from exc


def _looks_obfuscated(serialized: str) -> bool:
    try:
        json.loads(serialized)
    except ValueError:
        return True
    return False


class SecureStorage:
    """Wrap values as ``{value, timestamp, expiry, encrypted}`` entries.

    ``secure=True`` routes writes to the session backend when the client talks
    to an HTTPS origin; everything else goes to the persistent backend. Reads
    check the session backend first and never raise: expired or corrupt
    entries are removed and read as ``None``.
    """

    def __init__(
        self,
        *,
        session_backend: StorageBackend | None = None,
        persistent_backend: StorageBackend | None = None,
        secure_context: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session = session_backend or MemoryBackend()
        self._persistent = persistent_backend or MemoryBackend()
        self._secure_context = secure_context
        self._clock = clock

    def set(
        self,
        key: str,
        value: Any,
        *,
        expiry: float | None = None,
        encrypt: bool = False,
        secure: bool = False,
    ) -> None:
        """Store ``value``; ``expiry`` is a lifetime in seconds from now."""
        now = self._clock()
        entry = {
            "value": value,
            "timestamp": now,
            "expiry": now + expiry if expiry else None,
            "encrypted": encrypt,
        }
        try:
            serialized = json.dumps(entry, ensure_ascii=False)
        except (TypeError, ValueError):
            LOGGER.exception("Failed to store data for key %s", key)
            return
        if encrypt:
            serialized = obfuscate(serialized)

        backend = self._session if secure and self._secure_context else self._persistent
        backend.set(KEY_PREFIX + key, serialized)

    def get(self, key: str) -> Any:
        storage_key = KEY_PREFIX + key
        serialized = self._session.get(storage_key) or self._persistent.get(storage_key)
        if not serialized:
            return None

        try:
            if _looks_obfuscated(serialized):
                serialized = deobfuscate(serialized)
            entry = json.loads(serialized)
            if not isinstance(entry, dict):
                raise ValueError("Stored entry is not an object")
            expiry = float(entry.get("expiry") or 0)
        except (TypeError, ValueError):
            LOGGER.warning("Removing corrupted storage entry %s", key)
            self.remove(key)
            return None

        if expiry and self._clock() > expiry:
            self.remove(key)
            return None
        return entry.get("value")

    def remove(self, key: str) -> None:
        storage_key = KEY_PREFIX + key
        self._persistent.remove(storage_key)
        self._session.remove(storage_key)

    def clear(self) -> None:
        """Remove every prefixed entry from both backends."""
        for backend in (self._persistent, self._session):
            for storage_key in backend.keys():
                if storage_key.startswith(KEY_PREFIX):
                    backend.remove(storage_key)

    def storage_info(self) -> dict[str, int]:
        """Report persistent bytes used by prefixed keys against the quota."""
        used = 0
        for storage_key in self._persistent.keys():
            if storage_key.startswith(KEY_PREFIX):
                used += len(self._persistent.get(storage_key) or "")
        return {"used": used, "available": STORAGE_QUOTA_BYTES - used}

    def set_auth_tokens(self, access_token: str, refresh_token: str) -> None:
        self.set(
            AUTH_TOKEN_KEY,
            access_token,
            expiry=AUTH_TOKEN_EXPIRY_SECONDS,
            encrypt=True,
            secure=True,
        )
        self.set(
            REFRESH_TOKEN_KEY,
            refresh_token,
            expiry=REFRESH_TOKEN_EXPIRY_SECONDS,
            encrypt=True,
            secure=True,
        )

    def get_auth_token(self) -> str | None:
        return self.get(AUTH_TOKEN_KEY)

    def get_refresh_token(self) -> str | None:
        return self.get(REFRESH_TOKEN_KEY)

    def set_user_data(self, user: dict[str, Any]) -> None:
        self.set(CURRENT_USER_KEY, user, encrypt=True, secure=True)

    def get_user_data(self) -> dict[str, Any] | None:
        return self.get(CURRENT_USER_KEY)

    def set_session_started(self, started_at: float) -> None:
        """Remember when the user authenticated, for the absolute session timeout."""
        self.set(
            SESSION_STARTED_KEY,
            started_at,
            expiry=REFRESH_TOKEN_EXPIRY_SECONDS,
            secure=True,
        )

    def get_session_started(self) -> float | None:
        started_at = self.get(SESSION_STARTED_KEY)
        return float(started_at) if isinstance(started_at, (int, float)) else None

    def clear_auth_tokens(self) -> None:
        for key in (AUTH_TOKEN_KEY, REFRESH_TOKEN_KEY, CURRENT_USER_KEY, SESSION_STARTED_KEY):
            self.remove(key)
