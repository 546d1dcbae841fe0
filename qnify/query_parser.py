"""Parsing of filter and pagination query parameters."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

from qnify.errors import AppError
from qnify.filters import ExprGroup, FilterSyntaxError, parse

DEFAULT_LIMIT = 12
MAX_LIMIT = 35
START_PAGE = 0

_INTEGER = re.compile(r"[+-]?\d+")
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1


@dataclass
class QueryFilters:
    """Filter conditions and keyset pagination for list endpoints."""

    conditions: list[ExprGroup] = field(default_factory=list)
    page: int = START_PAGE
    limit: int = DEFAULT_LIMIT


def _to_int(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(text)
    value = int(text)
    if not _INT_MIN <= value <= _INT_MAX:
        raise ValueError(text)
    return value


def parse_pagination(args: Mapping[str, str]) -> tuple[int, int]:
    """The ``start`` and ``limit`` query values, with defaults and a cap."""
    page_text = args.get("start") or ""
    limit_text = args.get("limit") or ""
    page, limit = START_PAGE, DEFAULT_LIMIT

    if page_text:
        try:
            page = _to_int(page_text)
        except ValueError:
            raise AppError("invalid start query params passed") from None
    if limit_text:
        try:
            limit = _to_int(limit_text)
        except ValueError:
            raise AppError("invalid limit query params passed") from None

    if limit > MAX_LIMIT:
        raise AppError("limit is greater then max limit allowed")
    return page, limit


def parse_query_filter(args: Mapping[str, str]) -> QueryFilters:
    """Build :class:`QueryFilters` from the request's query parameters."""
    filters = QueryFilters()
    filter_text = args.get("filter") or ""
    if filter_text:
        try:
            filters.conditions = parse(filter_text)
        except FilterSyntaxError:
            raise AppError("invalid filter passed in query params") from None
    filters.page, filters.limit = parse_pagination(args)
    return filters