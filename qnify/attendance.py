"""Attendance totals for students."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from flask import Flask, Response

from qnify.database import Database
from qnify.errors import AppError
from qnify.query_parser import QueryFilters
from qnify.web import send_response

_STUDENT_TOTAL = (
    "SELECT COUNT(is_absent) AS absent, COUNT(is_half_day) AS half_day, "
    "COUNT(is_late) AS late FROM attendance WHERE student_id = $1"
)
_SECTION_SUMMARY = (
    "SELECT absent, half_day, late FROM ("
    "SELECT student_id AS id, COUNT(is_absent) AS absent, "
    "COUNT(is_half_day) AS half_day, COUNT(is_late) AS late "
    "FROM attendance GROUP BY student_id) AS totals"
)


@dataclass(frozen=True)
class AttendanceTotal:
    """How many absences, half days and late arrivals are on record."""

    absent: int = 0
    half_day: int = 0
    late: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"absent": self.absent, "halfDay": self.half_day, "late": self.late}


def student_total(db: Database, student_id: Any) -> AttendanceTotal:
    """Totals for one student."""
    row = db.query_row(_STUDENT_TOTAL, student_id)
    if row is None:
        raise AppError("no attendance totals returned")
    absent, half_day, late = row
    return AttendanceTotal(int(absent), int(half_day), int(late))


def section_summary(db: Database, filters: QueryFilters) -> list[AttendanceTotal]:
    """Totals for every student, ordered and paginated by student id."""
    return [
        AttendanceTotal(int(absent), int(half_day), int(late))
        for absent, half_day, late in db.list(_SECTION_SUMMARY, filters)
    ]


def register_routes(
    app: Flask, redis: Any, db: Database, logger: logging.Logger
) -> None:
    """Mount the attendance endpoints on ``app``."""

    def get_student_total(student_id: str) -> Response:
        return send_response(student_total(db, student_id).to_dict())

    app.add_url_rule(
        "/attendance/total/<student_id>",
        "attendance.student_total",
        get_student_total,
        methods=["GET"],
    )