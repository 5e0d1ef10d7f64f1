from __future__ import annotations

import json
from pathlib import Path

from academy.client.storage import (
    KEY_PREFIX,
    JsonFileBackend,
    MemoryBackend,
    SecureStorage,
    deobfuscate,
    obfuscate,
)
from tests.fakes import FakeClock


def _storage(clock: FakeClock, *, secure_context: bool = False, tmp_path: Path | None = None):
    session = MemoryBackend()
    persistent = JsonFileBackend(tmp_path / "storage.json") if tmp_path else MemoryBackend()
    storage = SecureStorage(
        session_backend=session,
        persistent_backend=persistent,
        secure_context=secure_context,
        clock=clock,
    )
    return storage, session, persistent


def test_storage_round_trip_with_prefix(clock: FakeClock) -> None:
    storage, _, persistent = _storage(clock)

    storage.set("profile", {"name": "Ada", "tags": ["a", "b"]})

    assert storage.get("profile") == {"name": "Ada", "tags": ["a", "b"]}
    assert persistent.keys() == [f"{KEY_PREFIX}profile"]
    entry = json.loads(persistent.get(f"{KEY_PREFIX}profile") or "")
    assert entry["encrypted"] is False
    assert entry["timestamp"] == clock()


def test_storage_expired_entry_reads_none_and_is_removed(clock: FakeClock) -> None:
    storage, _, persistent = _storage(clock)
    storage.set("otp", "1234", expiry=60)

    clock.advance(60)
    assert storage.get("otp") == "1234"

    clock.advance(1)
    assert storage.get("otp") is None
    assert persistent.keys() == []


def test_storage_encrypted_entries_are_not_plain_text(clock: FakeClock) -> None:
    storage, _, persistent = _storage(clock)

    storage.set("secret", "top-secret-value", encrypt=True)

    raw = persistent.get(f"{KEY_PREFIX}secret") or ""
    assert "top-secret-value" not in raw
    assert json.loads(deobfuscate(raw))["encrypted"] is True
    assert storage.get("secret") == "top-secret-value"


def test_obfuscation_round_trips_unicode() -> None:
    assert deobfuscate(obfuscate('{"value": "héllo ✓"}')) == '{"value": "héllo ✓"}'


def test_storage_removes_corrupted_entries(clock: FakeClock) -> None:
    storage, _, persistent = _storage(clock)
    persistent.set(f"{KEY_PREFIX}broken", "@@not-base64-or-json@@")
    persistent.set(f"{KEY_PREFIX}scalar", "42")

    assert storage.get("broken") is None
    assert storage.get("scalar") is None
    assert persistent.keys() == []


def test_secure_entries_use_session_backend_only_in_secure_context(clock: FakeClock) -> None:
    secure, secure_session, secure_persistent = _storage(clock, secure_context=True)
    plain, plain_session, plain_persistent = _storage(clock, secure_context=False)

    secure.set("token", "abc", secure=True)
    plain.set("token", "abc", secure=True)

    assert secure_session.keys() == [f"{KEY_PREFIX}token"]
    assert secure_persistent.keys() == []
    assert plain_session.keys() == []
    assert plain_persistent.keys() == [f"{KEY_PREFIX}token"]
    assert secure.get("token") == plain.get("token") == "abc"


def test_clear_only_touches_prefixed_keys(clock: FakeClock) -> None:
    storage, session, persistent = _storage(clock, secure_context=True)
    persistent.set("other_app_key", "keep")
    storage.set("a", 1)
    storage.set("b", 2, secure=True)

    storage.clear()

    assert persistent.keys() == ["other_app_key"]
    assert session.keys() == []


def test_auth_token_helpers(clock: FakeClock, tmp_path: Path) -> None:
    storage, _, _ = _storage(clock, tmp_path=tmp_path)

    storage.set_auth_tokens("access", "refresh")
    storage.set_user_data({"id": "user-1", "role": "student"})

    assert storage.get_auth_token() == "access"
    assert storage.get_refresh_token() == "refresh"
    assert storage.get_user_data() == {"id": "user-1", "role": "student"}

    clock.advance(24 * 60 * 60 + 1)
    assert storage.get_auth_token() is None
    assert storage.get_refresh_token() == "refresh"

    storage.clear_auth_tokens()
    assert storage.get_refresh_token() is None
    assert storage.get_user_data() is None


def test_json_file_backend_persists_between_instances(clock: FakeClock, tmp_path: Path) -> None:
    first, _, _ = _storage(clock, tmp_path=tmp_path)
    first.set("theme", "dark")

    second, _, _ = _storage(clock, tmp_path=tmp_path)

    assert second.get("theme") == "dark"
    info = second.storage_info()
    assert info["used"] > 0
    assert info["used"] + info["available"] == 5 * 1024 * 1024
