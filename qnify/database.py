"""Database connections and a dialect-aware query helper."""

from __future__ import annotations

import re
import sqlite3
import sys
from contextlib import closing
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Mapping
from urllib.parse import unquote, urlsplit

import pymysql

from qnify.errors import AppError
from qnify.query_builder import ParamStyle, QueryBuilder
from qnify.query_parser import QueryFilters

_PG_PARAM = re.compile(r"\$(\d+)")
_MYSQL_DSN = re.compile(
    r"^(?:(?P<user>[^:@/]*)(?::(?P<password>[^@]*))?@)?"
    r"(?:(?P<net>\w+)(?:\((?P<addr>[^)]*)\))?)?"
    r"/(?P<db>[^?]*)(?:\?.*)?$"
)
_MYSQL_DEFAULT_HOST = "127.0.0.1"
_MYSQL_DEFAULT_PORT = 3306


class DbType(IntEnum):
    POSTGRES = 1
    MYSQL = 2
    SQLITE = 3


@dataclass
class DbConfig:
    """Connection settings read from the ``db`` section of the config."""

    type: int = 0
    connection_url: str = ""
    max_open_connections: int = 0
    max_idle_connections: int = 0
    connection_max_lifetime: int = 0
    connection_max_idle_time: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> DbConfig:
        data = data or {}
        return cls(
            type=int(data.get("type") or 0),
            connection_url=str(data.get("connection_url") or ""),
            max_open_connections=int(data.get("maxOpenConnections") or 0),
            max_idle_connections=int(data.get("maxIdleConnections") or 0),
            connection_max_lifetime=int(data.get("connectionMaxLifetime") or 0),
            connection_max_idle_time=int(data.get("connectionMaxIdleTime") or 0),
        )


@dataclass
class _InitState:
    initialised: bool = False


_state = _InitState()


def _mysql_params(url: str) -> dict[str, Any]:
    if url.startswith("mysql://"):
        parts = urlsplit(url)
        return {
            "host": parts.hostname or _MYSQL_DEFAULT_HOST,
            "port": parts.port or _MYSQL_DEFAULT_PORT,
            "user": unquote(parts.username or ""),
            "password": unquote(parts.password or ""),
            "database": parts.path.lstrip("/"),
        }
    match = _MYSQL_DSN.match(url)
    if not match:
        raise ValueError(f"invalid DSN: {url!r}")
    params: dict[str, Any] = {
        "user": match["user"] or "",
        "password": match["password"] or "",
        "database": match["db"],
    }
    addr = match["addr"] or ""
    if match["net"] == "unix":
        params["unix_socket"] = addr
        return params
    host, _, port = addr.rpartition(":") if ":" in addr else (addr, "", "")
    params["host"] = host or _MYSQL_DEFAULT_HOST
    params["port"] = int(port) if port else _MYSQL_DEFAULT_PORT
    return params


def _connect_sqlite(config: DbConfig) -> sqlite3.Connection:
    connection = None
    try:
        connection = sqlite3.connect(
            config.connection_url, timeout=5.0, uri=True, check_same_thread=False
        )
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA foreign_keys=ON")
        connection.execute("SELECT 1").fetchone()
    except sqlite3.Error as exc:
        if connection is not None:
            connection.close()
        raise AppError(f"can not ping to database, err:{exc}", exc) from exc
    return connection


def _connect_mysql(config: DbConfig) -> Any:
    try:
        params = _mysql_params(config.connection_url)
    except ValueError as exc:
        raise AppError(f"database connection failed, err:{exc}", exc) from exc
    password = params.pop("password")
    try:
        connection = pymysql.connect(**params, password=password, autocommit=True)
        connection.ping(reconnect=False)
    except pymysql.MySQLError as exc:
        raise AppError(f"can not ping to database, err:{exc}", exc) from exc
    return connection


def connect_db(db_type: int, config: DbConfig) -> Any:
    """Open and check a connection of the given database type."""
    try:
        kind = DbType(db_type)
    except ValueError:
        raise AppError("unsupported database type passed in config") from None
    if kind is DbType.SQLITE:
        return _connect_sqlite(config)
    if kind is DbType.MYSQL:
        return _connect_mysql(config)
    raise AppError("database connection failed, err:no postgres driver available")


def init_db(config: DbConfig) -> Any:
    """Open the application's database connection; allowed once per process."""
    if _state.initialised:
        raise AppError("database already initialised")
    if sys.maxsize < 2**63 - 1:
        raise AppError("unsupported OS architecture")
    connection = connect_db(config.type, config)
    _state.initialised = True
    return connection


class Database:
    """A DB-API connection that picks the right query text for its dialect."""

    def __init__(self, db_type: int, connection: Any) -> None:
        try:
            self.db_type = DbType(db_type)
        except ValueError:
            raise AppError(f"invalid db type {db_type!r}") from None
        self.connection = connection

    def _adapt(self, query: str) -> str:
        if self.db_type is DbType.SQLITE:
            return _PG_PARAM.sub(r"?\1", query)
        if self.db_type is DbType.MYSQL:
            return query.replace("%", "%%").replace("?", "%s")
        return query

    def _cursor(self, query: str, args: tuple[Any, ...]) -> Any:
        cursor = self.connection.cursor()
        try:
            cursor.execute(self._adapt(query), args)
        except BaseException:
            cursor.close()
            raise
        return cursor

    def query_row(self, query: str, *args: Any) -> tuple[Any, ...] | None:
        """The first row of ``query``, or None when it returns nothing."""
        if self.db_type is DbType.MYSQL:
            raise AppError("invalid db type passed in query_row")
        with closing(self._cursor(query, args)) as cursor:
            row = cursor.fetchone()
        return None if row is None else tuple(row)

    def exec(self, pg_query: str, ms_query: str, *args: Any) -> int:
        """Run a write statement and return the number of affected rows."""
        query = ms_query if self.db_type is DbType.MYSQL else pg_query
        with closing(self._cursor(query, args)) as cursor:
            count = cursor.rowcount
        self.connection.commit()
        return count

    def list(self, query: str, filters: QueryFilters) -> list[tuple[Any, ...]]:
        """Rows of ``query`` narrowed by ``filters`` and paginated by id."""
        style = ParamStyle.MYSQL if self.db_type is DbType.MYSQL else ParamStyle.POSTGRES
        builder = QueryBuilder(filters, style)
        full_query = query + builder.query()
        with closing(self._cursor(full_query, tuple(builder.params()))) as cursor:
            return [tuple(row) for row in cursor.fetchall()]

    def insert(self, pg_query: str, ms_query: str, *args: Any) -> int:
        """Insert a row and return its id."""
        if self.db_type is DbType.MYSQL:
            with closing(self._cursor(ms_query, args)) as cursor:
                last_id = cursor.lastrowid
            self.connection.commit()
            return int(last_id)
        with closing(self._cursor(pg_query, args)) as cursor:
            row = cursor.fetchone()
        self.connection.commit()
        if row is None:
            raise AppError("insert returned no id")
        return int(row[0])