from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from ..attendance.model import AttendanceRecord, AttendanceReportRow
from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import TimeWindowProvider, ensure_aware, iter_days, now_utc
from ..core.constants import DEFAULT_ADMIN_LIST_LIMIT, DEFAULT_REPORT_DAYS
from ..core.enums import ErrorCode
from ..core.exceptions import NotFoundError, ValidationError
from ..users.repository import StudentRepository

DAY_PRESENT = "present"
DAY_ABSENT = "absent"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class SessionRow:
    """One stored session tagged with its local calendar day."""

    day: date
    record: AttendanceRecord
    check_in_display: str
    check_out_display: str

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "checkInDisplay": self.check_in_display,
            "checkOutDisplay": self.check_out_display,
            **self.record.to_dict(),
        }


@dataclass(frozen=True)
class DaySummary:
    """Daily rollup; absent days are synthesized, never stored."""

    day: date
    status: str
    first_check_in: Optional[datetime]
    last_check_out: Optional[datetime]
    sessions: tuple[AttendanceRecord, ...] = ()

    @property
    def sessions_count(self) -> int:
        return len(self.sessions)

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "status": self.status,
            "firstCheckIn": _iso(self.first_check_in),
            "lastCheckOut": _iso(self.last_check_out),
            "sessionsCount": self.sessions_count,
            "sessionIds": [r.attendance_id for r in self.sessions],
        }


@dataclass(frozen=True)
class StudentCalendar:
    student_id: int
    start: date
    end: date
    sessions: list[SessionRow]
    days: list[DaySummary]

    @property
    def present_days(self) -> int:
        return sum(1 for d in self.days if d.status == DAY_PRESENT)

    @property
    def absent_days(self) -> int:
        return sum(1 for d in self.days if d.status == DAY_ABSENT)

    def to_dict(self) -> dict:
        return {
            "studentId": self.student_id,
            "from": self.start.isoformat(),
            "to": self.end.isoformat(),
            "presentDays": self.present_days,
            "absentDays": self.absent_days,
            "sessions": [s.to_dict() for s in self.sessions],
            "days": [d.to_dict() for d in self.days],
        }


def summarize_days(
    records: Iterable[AttendanceRecord],
    *,
    start: date,
    end: date,
    clock: TimeWindowProvider,
    newest_first: bool = False,
) -> list[DaySummary]:
    """One row per day in ``[start, end]``: present with first-in/last-out, or absent."""

    by_day: dict[date, list[AttendanceRecord]] = defaultdict(list)
    for r in records:
        by_day[clock.day_key(r.check_in_at)].append(r)

    days: list[DaySummary] = []
    for day in iter_days(start, end):
        sessions = sorted(by_day.get(day, ()), key=lambda r: (r.check_in_at, r.attendance_id))
        if not sessions:
            days.append(DaySummary(day=day, status=DAY_ABSENT, first_check_in=None, last_check_out=None))
            continue

        checkouts = [r.check_out_at for r in sessions if r.check_out_at is not None]
        days.append(
            DaySummary(
                day=day,
                status=DAY_PRESENT,
                first_check_in=sessions[0].check_in_at,
                last_check_out=max(checkouts) if checkouts else None,
                sessions=tuple(sessions),
            )
        )

    if newest_first:
        days.reverse()
    return days


@dataclass(frozen=True)
class AdminStats:
    total_students: int
    present_today: int
    attendance_rate: int

    def to_dict(self) -> dict:
        return {
            "totalStudents": self.total_students,
            "presentToday": self.present_today,
            "attendanceRate": self.attendance_rate,
        }


class ReportService:
    """Read-only aggregation over stored sessions."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        students: StudentRepository,
        *,
        clock: Optional[TimeWindowProvider] = None,
    ):
        self._attendance = attendance
        self._students = students
        self._clock = clock or TimeWindowProvider()

    def default_range(self, *, now: Optional[datetime] = None) -> tuple[date, date]:
        today = self._clock.day_key(ensure_aware(now) if now else now_utc())
        return today - timedelta(days=DEFAULT_REPORT_DAYS - 1), today

    def build_student_calendar(
        self,
        student_id: int,
        *,
        start: date,
        end: date,
        newest_first: bool = False,
    ) -> StudentCalendar:
        if start > end:
            raise ValidationError("from must not be after to", start=start.isoformat(), end=end.isoformat())

        student = self._students.get_by_id(int(student_id))
        if not student:
            raise NotFoundError("Student not found", code=ErrorCode.STUDENT_NOT_FOUND, student_id=int(student_id))

        range_start, range_end = self._clock.range(start, end)
        records = sorted(
            self._attendance.find_range(student.student_id, range_start, range_end),
            key=lambda r: (r.check_in_at, r.attendance_id),
            reverse=True,
        )

        sessions = [
            SessionRow(
                day=self._clock.day_key(r.check_in_at),
                record=r,
                check_in_display=self._clock.format_display(r.check_in_at),
                check_out_display=self._clock.format_display(r.check_out_at),
            )
            for r in records
        ]
        days = summarize_days(records, start=start, end=end, clock=self._clock, newest_first=newest_first)
        return StudentCalendar(student_id=student.student_id, start=start, end=end, sessions=sessions, days=days)

    def admin_stats(self, *, now: Optional[datetime] = None) -> AdminStats:
        window = self._clock.window(ensure_aware(now) if now else now_utc())
        total = self._students.count_all()
        present = self._attendance.count_students_present(window.start, window.end)
        rate = round(present * 100 / total) if total > 0 else 0
        return AdminStats(total_students=total, present_today=present, attendance_rate=rate)

    def list_records(
        self,
        *,
        start: date,
        end: date,
        center_id: Optional[int] = None,
        status: Optional[str] = None,
        grade: Optional[str] = None,
        limit: int = DEFAULT_ADMIN_LIST_LIMIT,
    ) -> Sequence[AttendanceReportRow]:
        if start > end:
            raise ValidationError("dateFrom must not be after dateTo")
        range_start, range_end = self._clock.range(start, end)
        return self._attendance.get_report_rows(
            start=range_start,
            end=range_end,
            center_id=center_id,
            status=status,
            grade=grade,
            limit=int(limit),
        )
