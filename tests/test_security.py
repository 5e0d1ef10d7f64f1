from __future__ import annotations

import pytest

from academy.core.security import (
    build_signed_token,
    decode_signed_token,
    generate_opaque_token,
    hash_password,
    verify_password,
)


def test_password_hash_verifies_only_original_password() -> None:
    stored = hash_password("Secret@123")

    assert stored.startswith("pbkdf2_sha256$")
    assert verify_password("Secret@123", stored)
    assert not verify_password("secret@123", stored)


def test_verify_password_rejects_garbage_hash() -> None:
    assert not verify_password("anything", "not-a-hash")
    assert not verify_password("anything", "md5$1$abc$def")


def test_decode_signed_token_rejects_missing_expiry() -> None:
    token = build_signed_token({"sub": "user-1"}, "secret")

    with pytest.raises(ValueError):
        decode_signed_token(token, "secret", now=0)


def test_decode_signed_token_accepts_future_expiry() -> None:
    token = build_signed_token({"sub": "user-1", "exp": 100}, "secret")

    assert decode_signed_token(token, "secret", now=99)["sub"] == "user-1"


def test_opaque_tokens_are_random_hex() -> None:
    first = generate_opaque_token()

    assert len(first) == 64
    assert first != generate_opaque_token()
    int(first, 16)
