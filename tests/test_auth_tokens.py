from __future__ import annotations

import pytest

from academy.auth.errors import InvalidOrExpiredToken
from academy.auth.models import TokenPayload, UserRole
from academy.auth.tokens import TokenIssuer
from academy.core.security import build_signed_token, read_unverified_claims
from tests.fakes import FakeClock, make_auth_config

PAYLOAD = TokenPayload(sub="user-1", email="student@example.com", role=UserRole.STUDENT)


def test_access_token_round_trip(clock: FakeClock) -> None:
    issuer = TokenIssuer(make_auth_config(), clock=clock)

    token = issuer.issue_access_token(PAYLOAD)

    assert issuer.verify_access_token(token) == PAYLOAD
    claims = read_unverified_claims(token)
    assert claims["type"] == "access"
    assert claims["exp"] - claims["iat"] == 900


def test_token_signed_with_other_secret_is_rejected(clock: FakeClock) -> None:
    issuer = TokenIssuer(make_auth_config(), clock=clock)
    token = issuer.issue_access_token(PAYLOAD)

    with pytest.raises(InvalidOrExpiredToken):
        issuer.verify(token, "some-other-secret")


def test_refresh_token_is_not_an_access_token(clock: FakeClock) -> None:
    issuer = TokenIssuer(make_auth_config(), clock=clock)
    refresh = issuer.issue_refresh_token(PAYLOAD)

    assert issuer.verify_refresh_token(refresh).sub == "user-1"
    with pytest.raises(InvalidOrExpiredToken):
        issuer.verify_access_token(refresh)


def test_access_token_expires_at_ttl(clock: FakeClock) -> None:
    issuer = TokenIssuer(make_auth_config(access_token_ttl_seconds=60), clock=clock)
    token = issuer.issue_access_token(PAYLOAD)

    clock.advance(59)
    issuer.verify_access_token(token)

    clock.advance(1)
    with pytest.raises(InvalidOrExpiredToken):
        issuer.verify_access_token(token)


def test_wrong_issuer_is_rejected(clock: FakeClock) -> None:
    issuer = TokenIssuer(make_auth_config(), clock=clock)
    forged = build_signed_token(
        {
            "iss": "someone-else",
            "sub": "user-1",
            "email": "student@example.com",
            "role": "student",
            "type": "access",
            "exp": int(clock()) + 60,
        },
        "access-secret",
    )

    with pytest.raises(InvalidOrExpiredToken):
        issuer.verify_access_token(forged)


@pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c", "x..y"])
def test_malformed_tokens_are_rejected(clock: FakeClock, token: str) -> None:
    issuer = TokenIssuer(make_auth_config(), clock=clock)

    with pytest.raises(InvalidOrExpiredToken):
        issuer.verify_access_token(token)


def test_tampered_payload_is_rejected(clock: FakeClock) -> None:
    issuer = TokenIssuer(make_auth_config(), clock=clock)
    header, _, signature = issuer.issue_access_token(PAYLOAD).split(".")
    other = issuer.issue_access_token(
        TokenPayload(sub="user-2", email="admin@example.com", role=UserRole.ADMIN)
    )
    _, other_payload, _ = other.split(".")

    with pytest.raises(InvalidOrExpiredToken):
        issuer.verify_access_token(f"{header}.{other_payload}.{signature}")
