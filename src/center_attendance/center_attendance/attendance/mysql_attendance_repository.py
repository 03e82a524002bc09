from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..core.enums import ErrorCode
from ..core.exceptions import DomainError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, optional_float, to_db_datetime
from .model import UPDATABLE_FIELDS, AttendanceRecord, AttendanceReportRow, NewAttendanceRecord
from .repository import AttendanceRepository

_COLUMNS = """
    attendance_id, student_id, center_id, work_date, check_in_at, check_out_at, status,
    check_in_lat, check_in_lng, check_in_accuracy, distance_from_center_meters,
    check_out_lat, check_out_lng, check_out_accuracy, distance_from_center_checkout_meters,
    device_id, ip_address, user_agent
"""

_DATETIME_FIELDS = {"check_in_at", "check_out_at"}
_FLOAT_FIELDS = {
    "check_in_lat",
    "check_in_lng",
    "check_in_accuracy",
    "distance_from_center_meters",
    "check_out_lat",
    "check_out_lng",
    "check_out_accuracy",
    "distance_from_center_checkout_meters",
}


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        student_id=int(r["student_id"]),
        center_id=int(r["center_id"]),
        work_date=r["work_date"],
        check_in_at=from_db_datetime(r["check_in_at"]),
        check_out_at=from_db_datetime(r.get("check_out_at")),
        status=r.get("status") or "present",
        **{name: optional_float(r.get(name)) for name in _FLOAT_FIELDS},
        device_id=r.get("device_id"),
        ip_address=r.get("ip_address"),
        user_agent=r.get("user_agent"),
    )


def _to_db_value(name: str, value: Any) -> Any:
    return to_db_datetime(value) if name in _DATETIME_FIELDS else value


def _raise_if_open_session_clash(e: IntegrityError) -> None:
    if e.errno == errorcode.ER_DUP_ENTRY and "uq_attendance_open_session" in str(e):
        raise DomainError("Another session is already open for that day", code=ErrorCode.OPEN_SESSION_EXISTS) from e


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _select_day(self, student_id: int, center_id: int, day_start: datetime, day_end: datetime, extra: str = ""):
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE student_id=%s AND center_id=%s AND check_in_at >= %s AND check_in_at < %s {extra}
                ORDER BY check_in_at DESC, attendance_id DESC
                LIMIT 1
                """,
                (int(student_id), int(center_id), to_db_datetime(day_start), to_db_datetime(day_end)),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def find_open_session(
        self, student_id: int, center_id: int, day_start: datetime, day_end: datetime
    ) -> Optional[AttendanceRecord]:
        return self._select_day(student_id, center_id, day_start, day_end, "AND check_out_at IS NULL")

    def find_most_recent(
        self, student_id: int, center_id: int, day_start: datetime, day_end: datetime
    ) -> Optional[AttendanceRecord]:
        return self._select_day(student_id, center_id, day_start, day_end)

    def count_sessions(self, student_id: int, center_id: int, day_start: datetime, day_end: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS total
                FROM attendance_records
                WHERE student_id=%s AND center_id=%s AND check_in_at >= %s AND check_in_at < %s
                """,
                (int(student_id), int(center_id), to_db_datetime(day_start), to_db_datetime(day_end)),
            )
            r = fetchone(cur)
            return int(r["total"]) if r else 0

    def insert(self, record: NewAttendanceRecord) -> AttendanceRecord:
        values = asdict(record)
        columns = list(values)
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"""
                    INSERT INTO attendance_records({", ".join(columns)})
                    VALUES({", ".join(["%s"] * len(columns))})
                    """,
                    tuple(_to_db_value(c, values[c]) for c in columns),
                )
                new_id = int(cur.lastrowid)
        except IntegrityError as e:
            _raise_if_open_session_clash(e)
            raise
        return AttendanceRecord.from_new(new_id, record)

    def update_by_id(self, attendance_id: int, changes: Mapping[str, Any]) -> bool:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")
        if not changes:
            return False

        columns = sorted(changes)
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"UPDATE attendance_records SET {', '.join(f'{c}=%s' for c in columns)} WHERE attendance_id=%s",
                    tuple(_to_db_value(c, changes[c]) for c in columns) + (int(attendance_id),),
                )
                return cur.rowcount > 0
        except IntegrityError as e:
            _raise_if_open_session_clash(e)
            raise

    def find_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            r = fetchone(cur)
            return _to_record(r) if r else None

    def find_range(self, student_id: int, start: datetime, end: datetime) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE student_id=%s AND check_in_at >= %s AND check_in_at < %s
                ORDER BY check_in_at DESC, attendance_id DESC
                """,
                (int(student_id), to_db_datetime(start), to_db_datetime(end)),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def delete_by_id(self, attendance_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            return cur.rowcount > 0

    def get_recent_for_student(self, student_id: int, limit: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE student_id=%s
                ORDER BY check_in_at DESC
                LIMIT %s
                """,
                (int(student_id), int(limit)),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def count_students_present(self, start: datetime, end: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(DISTINCT student_id) AS total
                FROM attendance_records
                WHERE status='present' AND check_in_at >= %s AND check_in_at < %s
                """,
                (to_db_datetime(start), to_db_datetime(end)),
            )
            r = fetchone(cur)
            return int(r["total"]) if r else 0

    def get_report_rows(
        self,
        *,
        start: datetime,
        end: datetime,
        center_id: Optional[int] = None,
        status: Optional[str] = None,
        grade: Optional[str] = None,
        limit: int = 200,
    ) -> Sequence[AttendanceReportRow]:
        clauses = ["ar.check_in_at >= %s", "ar.check_in_at < %s"]
        params: list[object] = [to_db_datetime(start), to_db_datetime(end)]

        if center_id is not None:
            clauses.append("ar.center_id=%s")
            params.append(int(center_id))
        if status:
            clauses.append("ar.status=%s")
            params.append(status)
        if grade:
            clauses.append("s.grade=%s")
            params.append(grade)
        params.append(int(limit))

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT
                    ar.attendance_id, ar.student_id, u.name AS student_name, u.email AS student_email,
                    s.grade, s.roll_number,
                    ar.center_id, c.name AS center_name, c.code AS center_code,
                    ar.check_in_at, ar.check_out_at, ar.status,
                    ar.check_in_lat, ar.check_in_lng, ar.check_out_lat, ar.check_out_lng,
                    ar.distance_from_center_meters, ar.distance_from_center_checkout_meters
                FROM attendance_records ar
                LEFT JOIN students s ON s.student_id = ar.student_id
                LEFT JOIN users u ON u.user_id = s.user_id
                LEFT JOIN centers c ON c.center_id = ar.center_id
                WHERE {where}
                ORDER BY ar.check_in_at DESC
                LIMIT %s
                """,
                tuple(params),
            )
            rows = fetchall(cur)

            return [
                AttendanceReportRow(
                    attendance_id=int(r["attendance_id"]),
                    student_id=int(r["student_id"]),
                    student_name=r.get("student_name"),
                    student_email=r.get("student_email"),
                    grade=r.get("grade"),
                    roll_number=r.get("roll_number"),
                    center_id=int(r["center_id"]),
                    center_name=r.get("center_name"),
                    center_code=r.get("center_code"),
                    check_in_at=from_db_datetime(r["check_in_at"]),
                    check_out_at=from_db_datetime(r.get("check_out_at")),
                    status=r.get("status") or "present",
                    check_in_lat=optional_float(r.get("check_in_lat")),
                    check_in_lng=optional_float(r.get("check_in_lng")),
                    check_out_lat=optional_float(r.get("check_out_lat")),
                    check_out_lng=optional_float(r.get("check_out_lng")),
                    distance_from_center_meters=optional_float(r.get("distance_from_center_meters")),
                    distance_from_center_checkout_meters=optional_float(r.get("distance_from_center_checkout_meters")),
                )
                for r in rows
            ]
