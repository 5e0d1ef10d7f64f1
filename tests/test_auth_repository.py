from __future__ import annotations

from pathlib import Path

import pytest

from academy.auth.errors import ConflictingEmail
from academy.auth.models import CredentialRecord, UserRole
from academy.auth.repository import CredentialRepository


def _record(user_id: str = "user-1", email: str = "student@example.com") -> CredentialRecord:
    return CredentialRecord(
        user_id=user_id,
        email=email,
        password_hash="hash",
        first_name="Ada",
        last_name="Lovelace",
        verification_token=f"verify-{user_id}",
    )


def test_file_repository_creates_and_finds_user(tmp_path: Path) -> None:
    repo = CredentialRepository(tmp_path)

    repo.create_user(_record(email="Student@Example.com"))

    found = repo.find_by_email(" STUDENT@example.com ")
    assert found is not None
    assert found.email == "student@example.com"
    assert repo.find_by_id("user-1") == found
    assert repo.find_by_verification_token("verify-user-1") == found
    assert (tmp_path / "runtime" / "auth_store" / "users.json").exists()


def test_file_repository_rejects_duplicate_email(tmp_path: Path) -> None:
    repo = CredentialRepository(tmp_path)
    repo.create_user(_record())

    with pytest.raises(ConflictingEmail):
        repo.create_user(_record(user_id="user-2", email="STUDENT@example.com"))


def test_file_repository_reset_token_lifecycle(tmp_path: Path) -> None:
    repo = CredentialRepository(tmp_path)
    repo.create_user(_record())

    repo.set_password_reset_token("user-1", "reset-abc", 123.0)
    found = repo.find_by_reset_token("reset-abc")
    assert found is not None
    assert found.reset_expires_at == 123.0

    repo.update_password("user-1", "new-hash")
    repo.clear_password_reset_token("user-1")

    assert repo.find_by_reset_token("reset-abc") is None
    updated = repo.find_by_id("user-1")
    assert updated is not None
    assert updated.password_hash == "new-hash"
    assert updated.reset_expires_at is None


def test_file_repository_verify_email_drops_token(tmp_path: Path) -> None:
    repo = CredentialRepository(tmp_path)
    repo.create_user(_record())

    repo.verify_email("user-1")

    assert repo.find_by_verification_token("verify-user-1") is None
    user = repo.find_by_id("user-1")
    assert user is not None and user.is_verified


def test_file_repository_deactivates_and_changes_role(tmp_path: Path) -> None:
    repo = CredentialRepository(tmp_path)
    repo.create_user(_record())

    repo.set_active("user-1", False)
    promoted = repo.update_role("user-1", UserRole.INSTRUCTOR)

    assert promoted is not None
    assert promoted.is_active is False
    assert promoted.role is UserRole.INSTRUCTOR
    assert repo.set_active("missing", True) is None


def test_file_repository_tolerates_corrupted_file(tmp_path: Path) -> None:
    repo = CredentialRepository(tmp_path)
    (tmp_path / "runtime" / "auth_store" / "users.json").write_text("{not json", encoding="utf-8")

    assert repo.find_by_email("student@example.com") is None
    repo.create_user(_record())
    assert repo.find_by_email("student@example.com") is not None
