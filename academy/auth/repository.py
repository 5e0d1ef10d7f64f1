"""Credential store with MongoDB primary and JSON file fallback."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from threading import Lock
from typing import Any

from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from academy.auth.errors import ConflictingEmail
from academy.auth.models import CredentialRecord, UserRole, normalize_email
from academy.core.config import StorageConfig

LOGGER = logging.getLogger(__name__)


class CredentialRepository:
    """Persist credential records; email is the unique normalized identity."""

    def __init__(self, app_root: Path, storage: StorageConfig | None = None) -> None:
        """Initialize repository storage backends."""
        self._fallback_dir = app_root / "runtime" / "auth_store"
        self._fallback_dir.mkdir(parents=True, exist_ok=True)
        self._users_file = self._fallback_dir / "users.json"
        self._file_lock = Lock()

        self._mongo_users = None
        if storage is not None and storage.mongodb_uri:
            try:
                client: MongoClient = MongoClient(
                    storage.mongodb_uri, serverSelectionTimeoutMS=3000
                )
                client.admin.command("ping")
                self._mongo_users = client[storage.mongodb_db]["auth_users"]
                self._mongo_users.create_index("email", unique=True)
            except PyMongoError:
                LOGGER.warning("MongoDB unavailable, using file credential store")
                self._mongo_users = None

    def _read_json_file(self) -> list[dict[str, Any]]:
        """Read user rows from JSON file with empty fallback."""
        if not self._users_file.exists():
            return []
        try:
            payload = json.loads(self._users_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.exception("Failed reading credential file: %s", self._users_file)
            return []
        return payload if isinstance(payload, list) else []

    def _write_json_file(self, items: list[dict[str, Any]]) -> None:
        """Persist user rows to JSON file."""
        self._users_file.write_text(
            json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8"
        )

    def _find_one(self, field: str, value: str) -> CredentialRecord | None:
        if not value:
            return None
        if self._mongo_users is not None:
            doc = self._mongo_users.find_one({field: value}, {"_id": 0})
            return CredentialRecord.model_validate(doc) if doc else None

        with self._file_lock:
            rows = self._read_json_file()
        for row in rows:
            if str(row.get(field) or "") == value:
                return CredentialRecord.model_validate(row)
        return None

    def _update(self, user_id: str, changes: dict[str, Any]) -> CredentialRecord | None:
        changes = {**changes, "updated_at": time.time()}
        if self._mongo_users is not None:
            self._mongo_users.update_one({"user_id": user_id}, {"$set": changes})
            return self.find_by_id(user_id)

        with self._file_lock:
            rows = self._read_json_file()
            updated: dict[str, Any] | None = None
            for row in rows:
                if str(row.get("user_id") or "") == user_id:
                    row.update(changes)
                    updated = row
            if updated is None:
                return None
            self._write_json_file(rows)
        return CredentialRecord.model_validate(updated)

    def find_by_email(self, email: str) -> CredentialRecord | None:
        """Get user by normalized email."""
        return self._find_one("email", normalize_email(email))

    def find_by_id(self, user_id: str) -> CredentialRecord | None:
        return self._find_one("user_id", user_id)

    def find_by_verification_token(self, token: str) -> CredentialRecord | None:
        return self._find_one("verification_token", token)

    def find_by_reset_token(self, token: str) -> CredentialRecord | None:
        return self._find_one("reset_token", token)

    def create_user(self, user: CredentialRecord) -> CredentialRecord:
        """Insert a new user, raising ``ConflictingEmail`` for a taken email."""
        user = user.model_copy(update={"email": normalize_email(user.email)})
        doc = user.model_dump(mode="json")
        if self._mongo_users is not None:
            try:
                self._mongo_users.insert_one(dict(doc))
            except DuplicateKeyError as exc:
                raise ConflictingEmail() from exc
            return user

        with self._file_lock:
            rows = self._read_json_file()
            if any(normalize_email(str(row.get("email") or "")) == user.email for row in rows):
                raise ConflictingEmail()
            rows.append(doc)
            self._write_json_file(rows)
        return user

    def upsert_user(self, user: CredentialRecord) -> None:
        """Create or replace a user keyed by email."""
        user = user.model_copy(update={"email": normalize_email(user.email)})
        doc = user.model_dump(mode="json")
        if self._mongo_users is not None:
            self._mongo_users.update_one({"email": user.email}, {"$set": doc}, upsert=True)
            return

        with self._file_lock:
            rows = [
                row
                for row in self._read_json_file()
                if normalize_email(str(row.get("email") or "")) != user.email
            ]
            rows.append(doc)
            self._write_json_file(rows)

    def update_last_login(self, user_id: str, at: float | None = None) -> None:
        self._update(user_id, {"last_login_at": at if at is not None else time.time()})

    def set_password_reset_token(self, user_id: str, token: str, expires_at: float) -> None:
        self._update(user_id, {"reset_token": token, "reset_expires_at": expires_at})

    def clear_password_reset_token(self, user_id: str) -> None:
        self._update(user_id, {"reset_token": None, "reset_expires_at": None})

    def update_password(self, user_id: str, password_hash: str) -> None:
        self._update(user_id, {"password_hash": password_hash})

    def verify_email(self, user_id: str) -> None:
        """Mark email verified and drop the verification token."""
        self._update(user_id, {"is_verified": True, "verification_token": None})

    def update_verification_token(self, user_id: str, token: str) -> None:
        self._update(user_id, {"verification_token": token})

    def set_active(self, user_id: str, active: bool) -> CredentialRecord | None:
        """Soft-activate or deactivate an account."""
        return self._update(user_id, {"is_active": bool(active)})

    def update_role(self, user_id: str, role: UserRole) -> CredentialRecord | None:
        return self._update(user_id, {"role": str(role)})
