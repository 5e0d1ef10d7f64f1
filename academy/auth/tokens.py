"""Signed access/refresh token issuance and verification."""

from __future__ import annotations

import time
import uuid
from typing import Any, Callable, Literal

from academy.auth.errors import InvalidOrExpiredToken
from academy.auth.models import TokenPayload
from academy.core.config import AuthConfig
from academy.core.security import build_signed_token, decode_signed_token

TokenType = Literal["access", "refresh"]


class TokenIssuer:
    """Issue and verify the two token classes with independent secrets and TTLs."""

    def __init__(self, config: AuthConfig, *, clock: Callable[[], float] = time.time) -> None:
        self._config = config
        self._clock = clock

    def issue_access_token(self, payload: TokenPayload) -> str:
        """Sign a short-lived access token."""
        return self._issue(
            payload,
            token_type="access",
            secret=self._config.access_secret_key,
            ttl_seconds=self._config.access_token_ttl_seconds,
        )

    def issue_refresh_token(self, payload: TokenPayload) -> str:
        """Sign a long-lived refresh token with the refresh secret."""
        return self._issue(
            payload,
            token_type="refresh",
            secret=self._config.refresh_secret_key,
            ttl_seconds=self._config.refresh_token_ttl_seconds,
        )

    def _issue(
        self,
        payload: TokenPayload,
        *,
        token_type: TokenType,
        secret: str,
        ttl_seconds: int,
    ) -> str:
        now_ts = int(self._clock())
        claims: dict[str, Any] = {
            "iss": self._config.issuer,
            "sub": payload.sub,
            "email": payload.email,
            "role": str(payload.role),
            "type": token_type,
            "iat": now_ts,
            "exp": now_ts + ttl_seconds,
            "jti": uuid.uuid4().hex,
        }
        return build_signed_token(claims, secret)

    def verify(
        self, token: str, secret: str, *, expected_type: TokenType | None = None
    ) -> TokenPayload:
        """Return the token's identity claims or raise ``InvalidOrExpiredToken``."""
        try:
            claims = decode_signed_token(token, secret, now=self._clock())
        except ValueError as exc:
            raise InvalidOrExpiredToken() from exc

        if str(claims.get("iss") or "") != self._config.issuer:
            raise InvalidOrExpiredToken()
        if expected_type and str(claims.get("type") or "") != expected_type:
            raise InvalidOrExpiredToken()
        try:
            return TokenPayload(
                sub=str(claims["sub"]),
                email=str(claims["email"]),
                role=claims["role"],
            )
        except (KeyError, ValueError) as exc:
            raise InvalidOrExpiredToken() from exc

    def verify_access_token(self, token: str) -> TokenPayload:
        return self.verify(token, self._config.access_secret_key, expected_type="access")

    def verify_refresh_token(self, token: str) -> TokenPayload:
        return self.verify(token, self._config.refresh_secret_key, expected_type="refresh")
