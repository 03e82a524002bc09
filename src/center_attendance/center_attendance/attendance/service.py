from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from ..centers.model import Center, Geofence
from ..centers.repository import CenterRepository
from ..centers.service import CenterService
from ..common.datetime_utils import TimeWindowProvider, ensure_aware, now_utc
from ..common.geo import GeoPoint
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import AdmissionAction, ErrorCode, Flow, Intent
from ..core.exceptions import NotFoundError
from ..users.model import Student
from ..users.repository import StudentRepository
from .factory import AdmissionPolicyFactory
from .locks import KeyedLocks
from .model import AdmissionResult, AttendanceRecord, ClientAudit
from .policies.base import DaySnapshot
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TodayStatus:
    day: str
    records: Sequence[AttendanceRecord]
    open_session: Optional[AttendanceRecord]

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "isCheckedIn": self.open_session is not None,
            "openRecordId": self.open_session.attendance_id if self.open_session else None,
            "records": [r.to_dict() for r in self.records],
        }


class AttendanceService:
    """Admission engine: decides and applies check-in / check-out / scan transitions."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        students: StudentRepository,
        centers: CenterRepository,
        *,
        policy_factory: AdmissionPolicyFactory | None = None,
        clock: TimeWindowProvider | None = None,
        locks: KeyedLocks | None = None,
    ):
        self._attendance = attendance
        self._students = students
        self._centers = centers
        self._center_service = CenterService(centers)
        self._factory = policy_factory or AdmissionPolicyFactory()
        self._clock = clock or TimeWindowProvider()
        self._locks = locks or KeyedLocks()

    def _get_student(self, student_id: int) -> Student:
        student = self._students.get_by_id(int(student_id))
        if not student:
            raise NotFoundError("Student not found", code=ErrorCode.STUDENT_NOT_FOUND, student_id=int(student_id))
        return student

    def _get_center(self, center_id: int) -> Center:
        return self._center_service.get(center_id)

    def _snapshot(self, *, student: Student, center: Center, now: datetime) -> DaySnapshot:
        window = self._clock.window(now)
        args = (student.student_id, center.center_id, window.start, window.end)
        return DaySnapshot(
            now=now,
            window=window,
            open_session=self._attendance.find_open_session(*args),
            sessions_count=self._attendance.count_sessions(*args),
            most_recent=self._attendance.find_most_recent(*args),
        )

    def _admit(
        self,
        *,
        flow: Flow,
        intent: Intent,
        student_id: int,
        center_id: Optional[int] = None,
        position: Optional[GeoPoint] = None,
        audit: Optional[ClientAudit] = None,
        now: Optional[datetime] = None,
    ) -> AdmissionResult:
        now = ensure_aware(now) if now else now_utc()
        audit = audit or ClientAudit()

        student = self._get_student(student_id)
        center = self._get_center(center_id if center_id is not None else student.center_id)
        policy = self._factory.for_flow(flow)
        day = self._clock.day_key(now)

        with self._locks.hold((student.student_id, center.center_id, day)):
            snapshot = self._snapshot(student=student, center=center, now=now)
            decision = policy.decide(intent=intent, snapshot=snapshot, center=center, position=position)

            if decision.action == AdmissionAction.CHECK_IN:
                new_record = policy.build_check_in(
                    snapshot=snapshot,
                    student=student,
                    center=center,
                    decision=decision,
                    position=position,
                    audit=audit,
                )
                record = self._attendance.insert(new_record)
            else:
                open_record = snapshot.open_session
                changes = policy.build_check_out(
                    snapshot=snapshot,
                    record=open_record,
                    decision=decision,
                    position=position,
                    audit=audit,
                )
                self._attendance.update_by_id(open_record.attendance_id, changes)
                record = self._attendance.find_by_id(open_record.attendance_id)
                if record is None:
                    raise RuntimeError(f"attendance {open_record.attendance_id} vanished during checkout")

        logger.info(
            "%s %s: student=%s center=%s record=%s",
            flow.value,
            decision.action.value,
            student.student_id,
            center.center_id,
            record.attendance_id,
        )
        return AdmissionResult(action=decision.action, record=record, distance_meters=decision.distance_meters)

    def check_in(
        self,
        student_id: int,
        position: GeoPoint,
        *,
        audit: Optional[ClientAudit] = None,
        now: Optional[datetime] = None,
    ) -> AdmissionResult:
        """Self-service geofenced check-in at the student's home center."""

        return self._admit(
            flow=Flow.GEOFENCE,
            intent=Intent.CHECK_IN,
            student_id=student_id,
            position=position,
            audit=audit,
            now=now,
        )

    def check_out(
        self,
        student_id: int,
        position: GeoPoint,
        *,
        audit: Optional[ClientAudit] = None,
        now: Optional[datetime] = None,
    ) -> AdmissionResult:
        """Self-service geofenced check-out of today's open session."""

        return self._admit(
            flow=Flow.GEOFENCE,
            intent=Intent.CHECK_OUT,
            student_id=student_id,
            position=position,
            audit=audit,
            now=now,
        )

    def scan(
        self,
        student_id: int,
        *,
        center_id: Optional[int] = None,
        audit: Optional[ClientAudit] = None,
        now: Optional[datetime] = None,
    ) -> AdmissionResult:
        """Admin desk scan: toggles today's session at ``center_id`` (default: home center)."""

        return self._admit(
            flow=Flow.SCAN,
            intent=Intent.TOGGLE,
            student_id=student_id,
            center_id=center_id,
            audit=audit,
            now=now,
        )

    def get_geofence(self, student_id: int) -> Geofence:
        student = self._get_student(student_id)
        return self._center_service.geofence_of(self._get_center(student.center_id))

    def get_history(self, student_id: int, *, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[AttendanceRecord]:
        student = self._get_student(student_id)
        return self._attendance.get_recent_for_student(student.student_id, int(limit))

    def get_today(self, student_id: int, *, now: Optional[datetime] = None) -> TodayStatus:
        now = ensure_aware(now) if now else now_utc()
        student = self._get_student(student_id)
        window = self._clock.window(now)

        records = [
            r
            for r in self._attendance.find_range(student.student_id, window.start, window.end)
            if r.center_id == student.center_id
        ]
        open_session = next((r for r in records if r.is_open), None)
        return TodayStatus(day=window.day.isoformat(), records=records, open_session=open_session)
