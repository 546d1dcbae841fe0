"""Signed access and refresh tokens (HS256 JWTs) carrying the user id."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

import jwt

from qnify.errors import AppError, wrap

ACCESS_EXPIRY = timedelta(hours=1)
REFRESH_EXPIRY = timedelta(days=365)

_SIGNING_ALGORITHM = "HS256"
_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]


@dataclass(frozen=True)
class TokenData:
    """Claims the application stores in its tokens."""

    user_id: int = 0

    def to_claims(self) -> dict[str, Any]:
        return {"userId": self.user_id}

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> TokenData:
        user_id = claims.get("userId", 0)
        if user_id is None:
            user_id = 0
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise AppError("invalid claim type")
        return cls(user_id=user_id)


@dataclass(frozen=True)
class TokenConfig:
    """Secrets used to sign access and refresh tokens."""

    access_secret: str = ""
    refresh_secret: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> TokenConfig:
        data = data or {}
        return cls(
            access_secret=str(data.get("access_secret") or ""),
            refresh_secret=str(data.get("refresh_secret") or ""),
        )


@dataclass
class _Secrets:
    access: bytes = b""
    refresh: bytes = b""


_state = _Secrets()


def init_config(config: TokenConfig) -> None:
    """Install the signing secrets; they can be set only once."""
    if _state.access and _state.refresh:
        raise AppError("token secret already set")
    if not config.access_secret or not config.refresh_secret:
        raise AppError("invalid token secret found")
    _state.access = config.access_secret.encode()
    _state.refresh = config.refresh_secret.encode()


def generate_token(claim: TokenData, secret: bytes, expiry: timedelta) -> str:
    """Sign ``claim`` with ``secret``, expiring ``expiry`` from now."""
    payload = claim.to_claims()
    payload["exp"] = int(time.time() + expiry.total_seconds())
    try:
        return jwt.encode(payload, secret, algorithm=_SIGNING_ALGORITHM)
    except jwt.PyJWTError as exc:
        raise wrap("error occured while generating jwt token", exc) from exc


def get_tokens(claim: TokenData) -> tuple[str, str]:
    """An access token and a refresh token for ``claim``."""
    access_token = generate_token(claim, _state.access, ACCESS_EXPIRY)
    refresh_token = generate_token(claim, _state.refresh, REFRESH_EXPIRY)
    return access_token, refresh_token


def verify_token(token: str, secret: bytes) -> TokenData:
    """Check the signature and expiry of ``token`` and return its claims."""
    try:
        claims = jwt.decode(token, secret, algorithms=_HMAC_ALGORITHMS)
    except jwt.PyJWTError as exc:
        raise wrap("jwt token verification failed", exc) from exc
    return TokenData.from_claims(claims)


def verify_access_token(token: str) -> TokenData:
    return verify_token(token, _state.access)


def verify_refresh_token(token: str) -> TokenData:
    return verify_token(token, _state.refresh)