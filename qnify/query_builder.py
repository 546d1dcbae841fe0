"""Builds WHERE, keyset pagination and LIMIT clauses from parsed query filters."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable

from qnify.errors import AppError
from qnify.filters import Expr, ExprGroup, TokenType
from qnify.query_parser import QueryFilters

INVALID_FILTER = "invalid filter passed in query params"
NESTING_NOT_SUPPORTED = "only one level of nesting supported in filters"

_INTEGER = re.compile(r"[+-]?\d+")
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1


class ParamStyle(Enum):
    """Placeholder syntax of the target database."""

    POSTGRES = "$"  # numbered: $1, $2, ...
    MYSQL = "?"


def _literal_value(expr: Expr) -> Any:
    right = expr.right
    if right.type is TokenType.IDENTIFIER:
        if right.literal == "true":
            return True
        if right.literal == "false":
            return False
        raise AppError(INVALID_FILTER)
    if right.type is TokenType.NUMBER:
        if not _INTEGER.fullmatch(right.literal):
            raise AppError(INVALID_FILTER)
        number = int(right.literal)
        if not _INT_MIN <= number <= _INT_MAX:
            raise AppError(INVALID_FILTER)
        return number
    if right.type is TokenType.TEXT:
        return right.literal
    raise AppError(INVALID_FILTER)


class QueryBuilder:
    """Turns :class:`QueryFilters` into an SQL suffix and its bound parameters."""

    def __init__(
        self, filters: QueryFilters, style: ParamStyle = ParamStyle.POSTGRES
    ) -> None:
        self.filters = filters
        self.style = style
        self._built: tuple[str, tuple[Any, ...]] | None = None

    def query(self) -> str:
        """The SQL text to append to a SELECT statement."""
        return self._build()[0]

    def params(self) -> list[Any]:
        """The values bound to the placeholders, in order."""
        return list(self._build()[1])

    def _build(self) -> tuple[str, tuple[Any, ...]]:
        if self._built is None:
            params: list[Any] = []

            def bind(value: Any) -> str:
                params.append(value)
                if self.style is ParamStyle.POSTGRES:
                    return f"{self.style.value}{len(params)}"
                return self.style.value

            sql = (
                self._where(bind)
                + " id > "
                + bind(self.filters.page)
                + " ORDER BY id ASC LIMIT "
                + bind(self.filters.limit)
            )
            self._built = (sql, tuple(params))
        return self._built

    def _where(self, bind: Callable[[Any], str]) -> str:
        parts = [" WHERE "]
        conditions = self.filters.conditions
        for index, group in enumerate(conditions):
            if index:
                parts.append(f" {group.join} ")
            if isinstance(group.item, Expr):
                parts.append(self._condition(group.item, bind))
                continue
            parts.append("( ")
            parts.extend(self._inner_group(group.item, bind))
            parts.append(" )")
        if conditions:
            parts.append(" AND")
        return "".join(parts)

    def _inner_group(
        self, items: tuple[ExprGroup, ...], bind: Callable[[Any], str]
    ) -> list[str]:
        parts = []
        for index, inner in enumerate(items):
            if not isinstance(inner.item, Expr):
                raise AppError(NESTING_NOT_SUPPORTED)
            if index:
                parts.append(f" {inner.join} ")
            parts.append(self._condition(inner.item, bind))
        return parts

    @staticmethod
    def _condition(expr: Expr, bind: Callable[[Any], str]) -> str:
        value = _literal_value(expr)
        return f"{expr.left.literal} {expr.op} {bind(value)}"


def get_query(filters: QueryFilters) -> str:
    """The SQL suffix for ``filters`` using numbered placeholders."""
    return QueryBuilder(filters, ParamStyle.POSTGRES).query()