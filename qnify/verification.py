"""Identity verification: Google OAuth and SMS delivery of codes."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import quote, urlencode

import requests

from qnify import consts
from qnify.errors import AppError
from qnify.http_client import HttpClient

GOOGLE_API_URL = "https://www.googleapis.com"
GOOGLE_OAUTH_URL = "https://oauth2.googleapis.com"

_EMPTY = str()

_clients: dict[str, HttpClient] = {}


@dataclass(frozen=True)
class SmsMessage:
    """A code handed to the SMS transport."""

    recipient: str
    otp: str


sent_messages: list[SmsMessage] = []


def _shared_client(base_url: str) -> HttpClient:
    if base_url not in _clients:
        _clients[base_url] = HttpClient(base_url, True)
    return _clients[base_url]


def _field(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise AppError(f"unexpected type for field {key!r}")
    return value


def _text(data: Mapping[str, Any], key: str) -> str:
    return str(data.get(key) or _EMPTY)


def _decode(response: requests.Response) -> Mapping[str, Any]:
    try:
        data = json.loads(response.content)
    except ValueError as exc:
        raise AppError("invalid response body", exc) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise AppError("invalid response body")
    return data


@dataclass(frozen=True)
class GoogleAuthConfig:
    """OAuth client settings for Google sign-in."""

    client_id: str = _EMPTY
    client_secret: str = _EMPTY
    redirect_uri: str = _EMPTY

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> GoogleAuthConfig:
        data = data or {}
        names = ("client_id", "client_secret", "redirect_uri")
        return cls(**{name: _text(data, name) for name in names})


@dataclass(frozen=True)
class GoogleUserResult:
    """Profile returned by Google's user-info endpoint."""

    id: str = _EMPTY
    email: str = _EMPTY
    verified_email: bool = False
    name: str = _EMPTY
    given_name: str = _EMPTY
    family_name: str = _EMPTY
    picture: str = _EMPTY
    locale: str = _EMPTY

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> GoogleUserResult:
        return cls(
            id=_field(data, "id", str, _EMPTY),
            email=_field(data, "email", str, _EMPTY),
            verified_email=_field(data, "email_verified", bool, False),
            name=_field(data, "name", str, _EMPTY),
            given_name=_field(data, "given_name", str, _EMPTY),
            family_name=_field(data, "family_name", str, _EMPTY),
            picture=_field(data, "picture", str, _EMPTY),
            locale=_field(data, "locale", str, _EMPTY),
        )


@dataclass(frozen=True)
class GoogleOauthToken:
    """Tokens returned when exchanging an authorisation code."""

    access_token: str = _EMPTY
    id_token: str = _EMPTY

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> GoogleOauthToken:
        names = ("access_token", "id_token")
        return cls(**{name: _field(data, name, str, _EMPTY) for name in names})


def get_google_user(
    access_token: str, client: HttpClient | None = None
) -> GoogleUserResult:
    """Fetch the profile of the user ``access_token`` belongs to."""
    client = client or _shared_client(GOOGLE_API_URL)
    response = client.get(
        f"/oauth2/v3/userinfo?access_token={quote(access_token, safe='')}"
    )
    if response.status_code != 200:
        raise AppError("could not retrieve user")
    return GoogleUserResult.from_mapping(_decode(response))


def get_google_oauth_token(
    code: str, config: GoogleAuthConfig, client: HttpClient | None = None
) -> GoogleOauthToken:
    """Exchange an authorisation ``code`` for OAuth tokens."""
    client = client or _shared_client(GOOGLE_OAUTH_URL)
    form = urlencode(
        sorted(
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "redirect_uri": config.redirect_uri,
            }.items()
        )
    )
    headers = {consts.CONTENT_TYPE: consts.URL_ENCODED}
    try:
        response = client.post("/token", headers, form)
    except requests.RequestException as exc:
        raise AppError("error while making request") from exc
    if response.status_code != 200:
        raise AppError("invalid token")
    return GoogleOauthToken.from_mapping(_decode(response))


def send_sms(recipient: str, otp: str) -> None:
    """Hand ``otp`` for ``recipient`` to the console transport and record it."""
    message = SmsMessage(recipient=recipient, otp=otp)
    sys.stdout.write("sending sms\n")
    sys.stdout.flush()
    sent_messages.append(message)