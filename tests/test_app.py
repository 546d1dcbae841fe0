import pytest

from qnify import database
from qnify.app import build_app, main
from qnify.config import Config
from qnify.database import DbConfig, DbType
from qnify.errors import AppError


class FakeRedis:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value):
        self.store[key] = value

    def delete(self, key):
        self.store.pop(key, None)


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setattr(database._state, "initialised", False)
    return Config(
        port=3000,
        db=DbConfig(type=DbType.SQLITE, connection_url=str(tmp_path / "app.db")),
    )


def test_all_modules_mounted(config):
    app = build_app(config, FakeRedis())
    rules = {rule.rule for rule in app.url_map.iter_rules()}
    assert {
        "/auth/v1/login",
        "/auth/v1/oauth",
        "/auth/v1/refreshToken",
        "/auth/v1/logout",
        "/public/courses",
        "/admin/courses",
    } <= rules


def test_database_initialised_once(config):
    build_app(config, FakeRedis())
    with pytest.raises(AppError, match="database already initialised"):
        build_app(config, FakeRedis())


def test_logout_requires_token(config):
    client = build_app(config, FakeRedis()).test_client()
    response = client.delete("/auth/v1/logout")
    assert response.status_code == 401
    assert response.get_json() == {"message": "Unauthorized"}


def test_unknown_path_not_found(config):
    client = build_app(config, FakeRedis()).test_client()
    response = client.get("/no/such/route")
    assert response.status_code == 404
    assert response.data == b"Not Found"


def test_main_missing_config(tmp_path):
    with pytest.raises(AppError, match="error reading config file"):
        main(["--config", str(tmp_path / "absent.yaml")])