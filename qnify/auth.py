"""Authentication endpoints: OTP login, OAuth, token refresh and logout."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Mapping

import redis
import requests
from flask import Flask, Response, g, request

from qnify.database import Database
from qnify.errors import (
    AppError,
    HttpError,
    bad_request,
    internal_error,
    not_found,
    unauthorised,
)
from qnify.otp import verify_otp_token
from qnify.tokens import TokenConfig, TokenData, get_tokens, verify_refresh_token
from qnify.validation import is_valid_email
from qnify.verification import (
    GoogleAuthConfig,
    get_google_oauth_token,
    get_google_user,
)
from qnify.web import auth_required, send_ok, send_response, send_string

_INVALID_BODY = "invalid request body"
_INVALID_REFRESH = "invalid refresh token"


class Provider(IntEnum):
    """Ways a user can prove their identity."""

    PHONE_OTP = 0
    EMAIL_OTP = 1
    GOOGLE = 2
    APPLE = 3


@dataclass(frozen=True)
class AuthConfig:
    """The ``auth`` section of the configuration."""

    origin: str = ""
    token: TokenConfig = field(default_factory=TokenConfig)
    google: GoogleAuthConfig = field(default_factory=GoogleAuthConfig)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> AuthConfig:
        data = data or {}
        return cls(
            origin=str(data.get("origin") or ""),
            token=TokenConfig.from_mapping(data.get("token")),
            google=GoogleAuthConfig.from_mapping(data.get("google")),
        )


def _request_body() -> Mapping[str, Any]:
    try:
        data = json.loads(request.get_data())
    except ValueError:
        raise bad_request(_INVALID_BODY) from None
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise bad_request(_INVALID_BODY)
    return data


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise bad_request(_INVALID_BODY)
    return value


def _strings(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(
        item is None or isinstance(item, str) for item in value
    ):
        raise bad_request(_INVALID_BODY)
    return [item or "" for item in value]


def _integer(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise bad_request(_INVALID_BODY)
    return value


class AuthService:
    """Request handlers for the authentication endpoints."""

    def __init__(
        self,
        redis: Any,
        db: Database,
        logger: logging.Logger,
        config: AuthConfig,
    ) -> None:
        self.redis = redis
        self.db = db
        self.log = logger
        self.config = config

    def find_user(self, phone: str, email: str) -> tuple[int, str]:
        """The id of the user with this email (preferred) or phone, and the value used."""
        if email:
            if not is_valid_email(email):
                raise bad_request("invalid email")
            query, value = "SELECT id FROM users WHERE email = $1", email
        elif phone:
            query, value = "SELECT id FROM users WHERE phone = $1", phone
        else:
            raise bad_request("invalid phone/email")

        try:
            row = self.db.query_row(query, value)
        except HttpError:
            raise
        except Exception as exc:
            raise internal_error("error occured while searching user", exc) from exc
        if row is None:
            raise not_found("user not found")
        return int(row[0]), value

    def login(self) -> Response:
        """Exchange an OTP and the codes issued with it for a token pair."""
        body = _request_body()
        phone = _string(body, "phone")
        email = _string(body, "email")
        otp = _string(body, "otp")
        auth_codes = _strings(body, "authCodes")

        user_id, phone_or_email = self.find_user(phone, email)
        if not any(verify_otp_token(phone_or_email, otp, code) for code in auth_codes):
            raise unauthorised("invalid otp")
        return self.send_and_store_token(TokenData(user_id=user_id))

    def logout(self) -> Response:
        """Forget the signed-in user's refresh token."""
        claims: TokenData = g.claims
        try:
            self.redis.delete(str(claims.user_id))
        except redis.RedisError as exc:
            raise internal_error("error occured while deleting key", exc) from exc
        return send_ok()

    def oauth(self) -> Response:
        """Sign in with a third-party provider's authorisation code."""
        body = _request_body()
        provider = _integer(body, "provider")
        code = _string(body, "code")

        if provider == Provider.GOOGLE:
            try:
                oauth_token = get_google_oauth_token(code, self.config.google)
                user_info = get_google_user(oauth_token.access_token)
            except (AppError, requests.RequestException) as exc:
                return send_string(str(exc))
            email = user_info.email
        elif provider == Provider.APPLE:
            raise bad_request("provider yet to support")
        else:
            return send_string("Unknown provider")

        user_id, _ = self.find_user("", email)
        return self.send_and_store_token(TokenData(user_id=user_id))

    def refresh_token(self) -> Response:
        """Issue a new token pair for a refresh token that is still on record."""
        body = _request_body()
        presented = _string(body, "refresh_token")

        try:
            token_data = verify_refresh_token(presented)
        except AppError:
            raise bad_request(_INVALID_REFRESH) from None

        try:
            saved = self.redis.get(str(token_data.user_id))
        except redis.RedisError as exc:
            raise internal_error("eror while getting token", exc) from exc
        if isinstance(saved, bytes):
            saved = saved.decode()
        if saved is None or saved != presented:
            raise bad_request(_INVALID_REFRESH)

        return self.send_and_store_token(token_data)

    def send_and_store_token(self, claim: TokenData) -> Response:
        """Respond with a new token pair and remember the refresh token."""
        try:
            access_token, refresh_token = get_tokens(claim)
        except AppError as exc:
            raise internal_error("error while generating access token", exc) from exc

        try:
            self.redis.set(str(claim.user_id), refresh_token)
        except redis.RedisError:
            self.log.warning("error while storing refresh token")

        payload = {"access_token": access_token, "refresh_token": refresh_token}
        return send_response({key: value for key, value in payload.items() if value})


def register_routes(
    app: Flask,
    redis: Any,
    db: Database,
    logger: logging.Logger,
    config: AuthConfig,
) -> AuthService:
    """Mount the authentication endpoints on ``app``."""
    service = AuthService(redis, db, logger, config)

    app.add_url_rule(
        "/auth/v1/login", "auth.login", service.login, methods=["POST"]
    )
    app.add_url_rule(
        "/auth/v1/oauth", "auth.oauth", service.oauth, methods=["POST"]
    )
    app.add_url_rule(
        "/auth/v1/refreshToken",
        "auth.refresh_token",
        service.refresh_token,
        methods=["POST"],
    )
    app.add_url_rule(
        "/auth/v1/logout",
        "auth.logout",
        auth_required(service.logout),
        methods=["DELETE"],
    )
    return service