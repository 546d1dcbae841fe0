"""One-time passwords and stateless, time-limited OTP tokens."""

from __future__ import annotations

import hmac
import re
import secrets
import time

from qnify.crypto import generate_hmac

OTP_LENGTH = 5
OTP_EXPIRY_SECONDS = 10 * 60
HASH_SEPARATOR = "<"

_OTP_KEY = b"secret"
_INTEGER = re.compile(r"[+-]?\d+")


def generate_otp() -> str:
    """A random numeric code of ``OTP_LENGTH`` digits, zero padded."""
    number = secrets.randbelow(10**OTP_LENGTH)
    return f"{number:0{OTP_LENGTH}d}"


def _sign(phone_or_email: str, otp: str, expires: int) -> str:
    return generate_hmac(f"{phone_or_email}.{otp}.{expires}", _OTP_KEY)


def get_otp_token(phone_or_email: str, otp: str) -> str:
    """A token binding ``otp`` to ``phone_or_email`` until it expires."""
    expires = int(time.time()) + OTP_EXPIRY_SECONDS
    return f"{_sign(phone_or_email, otp, expires)}{HASH_SEPARATOR}{expires}"


def verify_otp_token(phone_or_email: str, otp: str, token: str) -> bool:
    """Whether ``token`` was issued for this recipient and code and is unexpired."""
    parts = token.split(HASH_SEPARATOR)
    if len(parts) != 2:
        return False
    hash_value, expires_text = parts
    if not _INTEGER.fullmatch(expires_text):
        return False
    expires = int(expires_text)
    if int(time.time()) > expires:
        return False
    expected = _sign(phone_or_email, otp, expires)
    return hmac.compare_digest(expected, hash_value)