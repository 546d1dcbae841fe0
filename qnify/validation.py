"""Input validation helpers."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_FORBIDDEN_URL_CHARS = re.compile(r"[\x00-\x20\x7f]")

_ATEXT = r"[A-Za-z0-9!#$%&'*+/=?^_`{|}~\-\u0080-\U0010FFFF]"
_DOT_ATOM = rf"{_ATEXT}+(?:\.{_ATEXT}+)*"
_QUOTED = r'"(?:[^"\\\r\n]|\\.)*"'
_LOCAL_PART = rf"(?:{_DOT_ATOM}|{_QUOTED})"
_DOMAIN = rf"(?:{_DOT_ATOM}|\[[^\[\]\\\s]*\])"
_ADDR_SPEC = rf"{_LOCAL_PART}@{_DOMAIN}"
_WORD = rf"(?:(?:{_ATEXT}|\.)+|{_QUOTED})"
_PHRASE = rf"{_WORD}(?:\s+{_WORD})*"
_ADDRESS = re.compile(
    rf"^\s*(?:{_ADDR_SPEC}|(?:{_PHRASE})?\s*<{_ADDR_SPEC}>)\s*$"
)

_FALLBACK_EMAIL = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\\.[a-zA-Z]{2,}$")


def verify(condition: bool, message: str, errors: list[str]) -> bool:
    """Append ``message`` to ``errors`` when ``condition`` fails."""
    if not condition:
        errors.append(message)
    return condition


def is_valid_url(value: str) -> bool:
    """Whether ``value`` is an absolute URL with a scheme and a host."""
    if not value or _FORBIDDEN_URL_CHARS.search(value):
        return False
    try:
        parts = urlsplit(value)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    if not parts.scheme or not _SCHEME.match(parts.scheme):
        return False
    host = parts.netloc.rpartition("@")[2]
    return host != ""


def is_valid_email(email: str) -> bool:
    """Whether ``email`` parses as a mail address."""
    if email == "":
        return False
    if _ADDRESS.match(email):
        return True
    return bool(_FALLBACK_EMAIL.match(email))