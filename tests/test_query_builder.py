import re

import pytest

from qnify.errors import AppError
from qnify.filters import parse
from qnify.query_builder import ParamStyle, QueryBuilder, get_query
from qnify.query_parser import QueryFilters


def _filters(text="", page=0, limit=12):
    return QueryFilters(conditions=parse(text) if text else [], page=page, limit=limit)


def test_no_conditions_only_paginates():
    qb = QueryBuilder(_filters(page=5, limit=10), ParamStyle.POSTGRES)
    assert qb.query() == " WHERE  id > $1 ORDER BY id ASC LIMIT $2"
    assert qb.params() == [5, 10]


def test_single_condition_postgres():
    qb = QueryBuilder(_filters("age > 18"), ParamStyle.POSTGRES)
    assert qb.query() == " WHERE age > $1 AND id > $2 ORDER BY id ASC LIMIT $3"
    assert qb.params() == [18, 0, 12]


def test_group_with_mysql_placeholders():
    qb = QueryBuilder(
        _filters("active = true && (name = 'jo' || age >= 3)"), ParamStyle.MYSQL
    )
    assert (
        qb.query()
        == " WHERE active = ? && ( name = ? || age >= ? ) AND id > ? ORDER BY id ASC LIMIT ?"
    )
    assert qb.params() == [True, "jo", 3, 0, 12]


def test_postgres_placeholders_are_numbered_in_order():
    qb = QueryBuilder(_filters("a = 1 && b = 'x' || c != false", page=3, limit=7))
    numbers = [int(n) for n in re.findall(r"\$(\d+)", qb.query())]
    assert numbers == list(range(1, len(qb.params()) + 1))
    assert qb.params() == [1, "x", False, 3, 7]


def test_mysql_placeholder_count_matches_params():
    qb = QueryBuilder(_filters("a = 1 && (b = 2 || c = 'z')"), ParamStyle.MYSQL)
    assert qb.query().count("?") == len(qb.params())
    assert "$" not in qb.query()


def test_negative_number_is_bound_as_int():
    qb = QueryBuilder(_filters("balance < -4"))
    assert qb.params()[0] == -4


def test_query_is_stable_across_calls():
    qb = QueryBuilder(_filters("a = 1"))
    first = qb.query()
    assert qb.query() == first
    assert qb.params() == [1, 0, 12]


def test_non_boolean_identifier_is_rejected():
    with pytest.raises(AppError, match="invalid filter passed in query params"):
        QueryBuilder(_filters("active = yes")).query()


def test_fractional_number_is_rejected():
    with pytest.raises(AppError, match="invalid filter passed in query params"):
        QueryBuilder(_filters("score > 1.5")).query()


def test_deep_nesting_is_rejected():
    with pytest.raises(AppError, match="only one level of nesting supported in filters"):
        QueryBuilder(_filters("(a = 1 && (b = 2))")).query()


def test_get_query_uses_numbered_placeholders():
    filters = _filters("age > 18", page=2, limit=4)
    assert get_query(filters) == QueryBuilder(filters, ParamStyle.POSTGRES).query()


def test_get_query_reports_invalid_filters():
    with pytest.raises(AppError):
        get_query(_filters("flag = maybe"))