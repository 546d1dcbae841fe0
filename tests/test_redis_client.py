from unittest.mock import patch

import pytest
import redis

from qnify import redis_client
from qnify.errors import AppError
from qnify.redis_client import get_redis


@pytest.fixture(autouse=True)
def fresh_state(monkeypatch):
    monkeypatch.setattr(redis_client._state, "initialised", False)


def test_invalid_url_is_rejected():
    with pytest.raises(AppError) as info:
        get_redis("notaurl")
    assert str(info.value) == "invalid redis connection url"
    assert isinstance(info.value.cause, ValueError)


@patch("redis.Redis.ping", side_effect=redis.ConnectionError("refused"))
def test_unreachable_server_is_reported(mock_ping):
    with pytest.raises(AppError) as info:
        get_redis("redis://localhost:6379/0")
    assert str(info.value) == "couldn't connect to redis"
    assert mock_ping.call_count == 1


@patch("redis.Redis.ping", return_value=True)
def test_successful_connection_returns_client(mock_ping):
    client = get_redis("redis://localhost:6379/0")
    assert isinstance(client, redis.Redis)
    assert client.connection_pool.connection_kwargs["host"] == "localhost"
    assert client.connection_pool.connection_kwargs["port"] == 6379


@patch("redis.Redis.ping", return_value=True)
def test_second_initialisation_fails(mock_ping):
    get_redis("redis://localhost:6379/0")
    with pytest.raises(AppError) as info:
        get_redis("redis://localhost:6379/0")
    assert str(info.value) == "redis is already initialised"


def test_failed_connection_does_not_mark_initialised():
    with patch("redis.Redis.ping", side_effect=redis.ConnectionError("refused")):
        with pytest.raises(AppError):
            get_redis("redis://localhost:6379/0")
    with patch("redis.Redis.ping", return_value=True):
        client = get_redis("redis://localhost:6379/0")
    assert client.connection_pool.connection_kwargs["port"] == 6379