from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ...centers.model import Center
from ...common.datetime_utils import DayWindow
from ...common.geo import GeoPoint
from ...core.enums import AdmissionAction, AttendanceStatus, Flow, Intent
from ...users.model import Student
from ..model import AttendanceRecord, ClientAudit, NewAttendanceRecord


@dataclass(frozen=True)
class DaySnapshot:
    """What the store says about one (student, center, day) at decision time."""

    now: datetime
    window: DayWindow
    open_session: Optional[AttendanceRecord]
    sessions_count: int
    most_recent: Optional[AttendanceRecord]

    @property
    def last_action_at(self) -> Optional[datetime]:
        return self.most_recent.last_action_at if self.most_recent else None


@dataclass(frozen=True)
class AdmissionDecision:
    action: AdmissionAction
    distance_meters: Optional[float] = None


class AdmissionPolicy(ABC):
    """Strategy Pattern: one admission flow (guards plus the shape of the write)."""

    flow: Flow

    @abstractmethod
    def decide(
        self,
        *,
        intent: Intent,
        snapshot: DaySnapshot,
        center: Center,
        position: Optional[GeoPoint],
    ) -> AdmissionDecision:
        """Return the transition to apply or raise ``AdmissionRejected``."""

        raise NotImplementedError

    def build_check_in(
        self,
        *,
        snapshot: DaySnapshot,
        student: Student,
        center: Center,
        decision: AdmissionDecision,
        position: Optional[GeoPoint],
        audit: ClientAudit,
    ) -> NewAttendanceRecord:
        return NewAttendanceRecord(
            student_id=student.student_id,
            center_id=center.center_id,
            work_date=snapshot.window.day,
            check_in_at=snapshot.now,
            status=AttendanceStatus.PRESENT.value,
            device_id=audit.device_id,
            ip_address=audit.ip_address,
            user_agent=audit.user_agent,
        )

    def build_check_out(
        self,
        *,
        snapshot: DaySnapshot,
        record: AttendanceRecord,
        decision: AdmissionDecision,
        position: Optional[GeoPoint],
        audit: ClientAudit,
    ) -> dict[str, Any]:
        # Audit fields already on the record win.
        return {
            "check_out_at": snapshot.now,
            "device_id": record.device_id or audit.device_id,
            "ip_address": record.ip_address or audit.ip_address,
            "user_agent": record.user_agent or audit.user_agent,
        }
