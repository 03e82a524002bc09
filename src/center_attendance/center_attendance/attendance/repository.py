from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from .model import AttendanceRecord, AttendanceReportRow, NewAttendanceRecord


class AttendanceRepository(Protocol):
    """Session record store.

    Day windows are half-open ``[day_start, day_end)`` ranges of UTC instants
    matched against ``check_in_at``.
    """

    def find_open_session(
        self, student_id: int, center_id: int, day_start: datetime, day_end: datetime
    ) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def count_sessions(self, student_id: int, center_id: int, day_start: datetime, day_end: datetime) -> int:
        raise NotImplementedError

    def find_most_recent(
        self, student_id: int, center_id: int, day_start: datetime, day_end: datetime
    ) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def insert(self, record: NewAttendanceRecord) -> AttendanceRecord:
        raise NotImplementedError

    def update_by_id(self, attendance_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def find_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def find_range(self, student_id: int, start: datetime, end: datetime) -> Sequence[AttendanceRecord]:
        """Records with check-in in ``[start, end)``, newest check-in first."""

        raise NotImplementedError

    def delete_by_id(self, attendance_id: int) -> bool:
        raise NotImplementedError

    def get_recent_for_student(self, student_id: int, limit: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def count_students_present(self, start: datetime, end: datetime) -> int:
        raise NotImplementedError

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
        raise NotImplementedError
