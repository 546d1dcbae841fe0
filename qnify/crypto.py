"""Keyed hashing helpers."""

from __future__ import annotations

import hashlib
import hmac


def generate_hmac(data: str, key: bytes | str) -> str:
    """Hex-encoded HMAC-SHA256 of ``data`` under ``key``."""
    if isinstance(key, str):
        key = key.encode()
    return hmac.new(key, data.encode(), hashlib.sha256).hexdigest()