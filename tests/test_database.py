import sqlite3

import pytest

from qnify import database
from qnify.database import Database, DbConfig, DbType, connect_db, init_db
from qnify.errors import AppError
from qnify.filters import parse
from qnify.query_parser import QueryFilters

PG_INSERT = "INSERT INTO items (name, age) VALUES ($1, $2) RETURNING id"
MS_INSERT = "INSERT INTO items (name, age) VALUES (?, ?)"


@pytest.fixture
def db():
    connection = sqlite3.connect(":memory:")
    connection.execute(
        "CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)"
    )
    yield Database(DbType.SQLITE, connection)
    connection.close()


def _add(db, name, age):
    return db.insert(PG_INSERT, MS_INSERT, name, age)


class _RecordingCursor:
    rowcount = 1
    lastrowid = 42

    def __init__(self, owner):
        self.owner = owner

    def execute(self, query, params):
        self.owner.statements.append((query, tuple(params)))

    def fetchone(self):
        return None

    def fetchall(self):
        return []

    def close(self):
        pass


class _RecordingConnection:
    def __init__(self):
        self.statements = []
        self.commits = 0

    def cursor(self):
        return _RecordingCursor(self)

    def commit(self):
        self.commits += 1


def test_insert_returns_new_ids_and_row_reads_back(db):
    ids = [_add(db, name, age) for name, age in [("ann", 20), ("bob", 30), ("cy", 40)]]
    assert ids == sorted(ids)
    assert len(set(ids)) == 3
    assert db.query_row("SELECT name, age FROM items WHERE id=$1", ids[1]) == ("bob", 30)


def test_query_row_without_match_is_none(db):
    assert db.query_row("SELECT name FROM items WHERE id=$1", 999) is None


def test_exec_updates_and_deletes(db):
    item_id = _add(db, "ann", 20)
    updated = db.exec(
        "UPDATE items SET age=$1 WHERE id=$2", "UPDATE items SET age=? WHERE id=?", 41, item_id
    )
    assert updated == 1
    assert db.query_row("SELECT age FROM items WHERE id=$1", item_id) == (41,)
    deleted = db.exec("DELETE FROM items WHERE id=$1", "DELETE FROM items WHERE id=?", item_id)
    assert deleted == 1
    assert db.query_row("SELECT age FROM items WHERE id=$1", item_id) is None


def test_list_filters_and_paginates_by_id(db):
    for name, age in [("a", 10), ("b", 20), ("c", 30), ("d", 40)]:
        _add(db, name, age)
    first = db.list(
        "SELECT id, name FROM items",
        QueryFilters(conditions=parse("age >= 20"), page=0, limit=2),
    )
    assert [name for _, name in first] == ["b", "c"]
    rest = db.list(
        "SELECT id, name FROM items",
        QueryFilters(conditions=parse("age >= 20"), page=first[-1][0], limit=2),
    )
    assert [name for _, name in rest] == ["d"]


def test_list_without_conditions_orders_by_id(db):
    ids = [_add(db, name, 1) for name in ["x", "y", "z"]]
    rows = db.list("SELECT id FROM items", QueryFilters())
    assert [row[0] for row in rows] == ids


def test_mysql_statements_use_driver_placeholders():
    connection = _RecordingConnection()
    db = Database(DbType.MYSQL, connection)
    db.exec("UPDATE t SET a=$1 WHERE id=$2", "UPDATE t SET a=? WHERE id=?", 5, 9)
    assert connection.statements[-1] == ("UPDATE t SET a=%s WHERE id=%s", (5, 9))
    assert connection.commits == 1


def test_mysql_insert_returns_last_row_id():
    connection = _RecordingConnection()
    db = Database(DbType.MYSQL, connection)
    assert db.insert(PG_INSERT, MS_INSERT, "ann", 3) == _RecordingCursor.lastrowid
    query, params = connection.statements[-1]
    assert "$" not in query
    assert query.count("%s") == len(params)


def test_mysql_list_binds_every_placeholder():
    connection = _RecordingConnection()
    db = Database(DbType.MYSQL, connection)
    assert db.list("SELECT id FROM t", QueryFilters(conditions=parse("a = 1"))) == []
    query, params = connection.statements[-1]
    assert query.count("%s") == len(params)
    assert params == (1, 0, 12)


def test_query_row_is_not_available_for_mysql():
    db = Database(DbType.MYSQL, _RecordingConnection())
    with pytest.raises(AppError, match="invalid db type"):
        db.query_row("SELECT 1")


def test_unknown_db_type_is_rejected():
    with pytest.raises(AppError):
        Database(7, _RecordingConnection())


def test_config_from_mapping_reads_yaml_keys():
    config = DbConfig.from_mapping(
        {
            "type": 3,
            "connection_url": "app.db",
            "maxOpenConnections": 4,
            "maxIdleConnections": 2,
            "connectionMaxLifetime": 5,
            "connectionMaxIdleTime": 6,
        }
    )
    assert config == DbConfig(3, "app.db", 4, 2, 5, 6)


def test_init_db_opens_sqlite_once(tmp_path, monkeypatch):
    monkeypatch.setattr(database._state, "initialised", False)
    config = DbConfig(type=DbType.SQLITE, connection_url=str(tmp_path / "app.db"))
    connection = init_db(config)
    try:
        assert connection.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert connection.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        with pytest.raises(AppError, match="database already initialised"):
            init_db(config)
    finally:
        connection.close()


def test_init_db_rejects_unknown_type(monkeypatch):
    monkeypatch.setattr(database._state, "initialised", False)
    with pytest.raises(AppError, match="unsupported database type passed in config"):
        init_db(DbConfig(type=9))
    assert database._state.initialised is False


def test_connect_db_reports_unreachable_sqlite_file(tmp_path):
    config = DbConfig(type=DbType.SQLITE, connection_url=str(tmp_path / "no" / "app.db"))
    with pytest.raises(AppError, match="can not ping to database"):
        connect_db(DbType.SQLITE, config)


def test_connect_db_rejects_malformed_mysql_dsn():
    config = DbConfig(type=DbType.MYSQL, connection_url="not a dsn")
    with pytest.raises(AppError, match="database connection failed"):
        connect_db(DbType.MYSQL, config)


def test_connect_db_postgres_is_unavailable():
    with pytest.raises(AppError, match="database connection failed"):
        connect_db(DbType.POSTGRES, DbConfig(type=DbType.POSTGRES))