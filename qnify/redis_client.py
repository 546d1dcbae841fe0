"""Connection to the shared Redis instance."""

from __future__ import annotations

from dataclasses import dataclass

import redis

from qnify.errors import AppError, wrap


@dataclass
class _InitState:
    initialised: bool = False


_state = _InitState()


def get_redis(url: str) -> redis.Redis:
    """Connect to Redis at ``url`` and check it answers; allowed once per process."""
    if _state.initialised:
        raise AppError("redis is already initialised")

    try:
        client = redis.Redis.from_url(url)
    except ValueError as exc:
        raise wrap("invalid redis connection url", exc) from exc

    try:
        client.ping()
    except redis.RedisError as exc:
        client.close()
        raise wrap("couldn't connect to redis", exc) from exc

    _state.initialised = True
    return client