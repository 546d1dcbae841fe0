"""Course catalogue: model, storage and HTTP endpoints."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, astuple, dataclass, fields
from typing import Any, Mapping

from flask import Flask, Response

from qnify import consts
from qnify.database import Database
from qnify.errors import bad_request
from qnify.query_parser import QueryFilters, parse_query_filter
from qnify.validation import is_valid_url, verify
from qnify.web import parse_json, send_response

_PARSE_ERROR = "error parsing request body"

_COLUMNS = (
    "id, cid, name, locale, validity, price, discount_percent, is_public, "
    "is_open, description, thumbnail, starts_at, ends_at, created_at, updated_at"
)
_PG_VALUES = ", ".join(f"${n}" for n in range(1, 16))
_MS_VALUES = ", ".join("?" for _ in range(15))

_COURSE_BY_ID = f"SELECT {_COLUMNS} FROM course WHERE id=$1"
_LIST_COURSE = f"SELECT {_COLUMNS} FROM course"
_INSERT_COURSE_PG = f"INSERT INTO course ({_COLUMNS}) VALUES ({_PG_VALUES}) RETURNING id"
_INSERT_COURSE_MS = f"INSERT INTO course ({_COLUMNS}) VALUES ({_MS_VALUES})"
_UPDATE_COURSE_PG = (
    "UPDATE course SET name=$1, locale=$2, validity=$3, price=$4, discount_percent=$5, "
    "is_public=$6, is_open=$7, description=$8, thumbnail=$9, starts_at=$10, ends_at=$11, "
    "created_at=$12, updated_at=$13 WHERE id=$14"
)
_UPDATE_COURSE_MS = (
    "UPDATE course SET name=?, locale=?, validity=?, price=?, discount_percent=?, "
    "is_public=?, is_open=?, description=?, thumbnail=?, starts_at=?, ends_at=?, "
    "created_at=?, updated_at=? WHERE id=?"
)
_DELETE_COURSE_PG = "DELETE FROM course WHERE id=$1"
_DELETE_COURSE_MS = "DELETE FROM course WHERE id=?"

# (field, type, nullable) in column order
_SCHEMA = (
    ("id", int, False),
    ("cid", str, False),
    ("name", str, False),
    ("locale", int, True),
    ("validity", int, True),
    ("price", int, False),
    ("discount_percent", int, True),
    ("is_public", bool, False),
    ("is_open", bool, False),
    ("description", int, True),
    ("thumbnail", str, True),
    ("starts_at", int, True),
    ("ends_at", int, True),
    ("created_at", int, False),
    ("updated_at", int, False),
)


def _value(data: Mapping[str, Any], key: str, kind: type, nullable: bool) -> Any:
    value = data.get(key)
    if value is None:
        return None if nullable else kind()
    if kind is int:
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, kind)
    if not valid:
        raise bad_request(_PARSE_ERROR)
    return value


@dataclass
class Course:
    """A course offered on the platform."""

    id: int = 0
    cid: str = ""
    name: str = ""
    locale: int | None = None
    validity: int | None = None
    price: int = 0
    discount_percent: int | None = None
    is_public: bool = False
    is_open: bool = False
    description: int | None = None
    thumbnail: str | None = None
    starts_at: int | None = None
    ends_at: int | None = None
    created_at: int = 0
    updated_at: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Course:
        """Build a course from decoded JSON; wrong types are a bad request."""
        return cls(
            **{name: _value(data, name, kind, nullable) for name, kind, nullable in _SCHEMA}
        )

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> Course:
        values = dict(zip((f.name for f in fields(cls)), row))
        values["is_public"] = bool(values["is_public"])
        values["is_open"] = bool(values["is_open"])
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def validate_course(course: Course) -> list[str]:
    """Messages describing every problem with ``course``; empty when valid."""
    errors: list[str] = []
    verify(
        len(course.name.encode()) <= consts.STR_MAX_LEN,
        "course name too long, should be less than 256 characters",
        errors,
    )
    verify(course.name != "", "course name should not be empty", errors)
    verify(
        not course.thumbnail or is_valid_url(course.thumbnail),
        "invalid thumbnail url",
        errors,
    )
    verify(course.price != 0, "price shouldn't be 0", errors)
    return errors


class CourseRepository:
    """Storage of courses in the ``course`` table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def by_id(self, course_id: Any) -> Course | None:
        row = self.db.query_row(_COURSE_BY_ID, course_id)
        return None if row is None else Course.from_row(row)

    def list(self, filters: QueryFilters) -> list[Course]:
        return [Course.from_row(row) for row in self.db.list(_LIST_COURSE, filters)]

    def create(self, course: Course) -> int:
        return self.db.insert(_INSERT_COURSE_PG, _INSERT_COURSE_MS, *astuple(course))

    def update(self, course_id: Any, course: Course) -> None:
        self.db.exec(
            _UPDATE_COURSE_PG,
            _UPDATE_COURSE_MS,
            *astuple(course)[2:],
            course_id,
        )

    def delete(self, course_id: Any) -> None:
        self.db.exec(_DELETE_COURSE_PG, _DELETE_COURSE_MS, course_id)


def _request_course() -> Course:
    data = parse_json()
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise bad_request(_PARSE_ERROR)
    return Course.from_mapping(data)


def _invalid(errors: list[str]) -> Response:
    body = json.dumps({"error": "Invalid data", "errors": errors})
    return Response(body, status=400, mimetype=consts.JSON_TYPE)


def _text(text: str, status: int = 200) -> Response:
    return Response(text, status=status, mimetype=consts.TEXT_TYPE)


def register_routes(
    app: Flask, redis: Any, db: Database, logger: logging.Logger
) -> CourseRepository:
    """Mount the course endpoints on ``app``."""
    repository = CourseRepository(db)

    def get_course(course_id: str) -> Response:
        course = repository.by_id(course_id)
        if course is None:
            return _text("Course not found", 404)
        return send_response(course.to_dict())

    def get_all_courses() -> Response:
        from flask import request

        filters = parse_query_filter(request.args)
        return send_response([course.to_dict() for course in repository.list(filters)])

    def create_course() -> Response:
        course = _request_course()
        errors = validate_course(course)
        if errors:
            return _invalid(errors)
        now = int(time.time())
        course.created_at = now
        course.updated_at = now
        repository.create(course)
        return send_response({"data": course.to_dict()})

    def update_course(course_id: str) -> Response:
        course = _request_course()
        errors = validate_course(course)
        if errors:
            return _invalid(errors)
        course.updated_at = int(time.time())
        repository.update(course_id, course)
        return _text("Course updated successfully")

    def delete_course(course_id: str) -> Response:
        repository.delete(course_id)
        return _text("Course deleted successfully")

    app.add_url_rule(
        "/public/courses/<course_id>", "course.get", get_course, methods=["GET"]
    )
    app.add_url_rule(
        "/public/courses", "course.list", get_all_courses, methods=["GET"]
    )
    app.add_url_rule(
        "/admin/courses", "course.create", create_course, methods=["POST"]
    )
    app.add_url_rule(
        "/admin/courses/<course_id>", "course.update", update_course, methods=["PUT"]
    )
    app.add_url_rule(
        "/admin/courses/<course_id>", "course.delete", delete_course, methods=["DELETE"]
    )
    return repository